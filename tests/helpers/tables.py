"""
Synthetic observation tables for tests.
"""

import numpy as np
import pandas as pd
from scipy.stats import norm

DESIGNS = ["experimental", "quasi_experimental", "correlational", "descriptive"]


def make_raw_table(n_studies: int = 20, min_p: int = 2, max_p: int = 5, z_mean: float = 2.8, seed: int = 123) -> pd.DataFrame:
    """Raw extraction-style table with 2-5 p-values per study.

    Studies are spread over articles (two studies per article), a journal
    tier, an open-science flag and four research designs.
    """
    rng = np.random.default_rng(seed)
    rows = []
    for s in range(n_studies):
        n_p = int(rng.integers(min_p, max_p + 1))
        z = np.abs(rng.normal(z_mean, 1.0, size=n_p))
        for p in 2 * norm.sf(z):
            rows.append(
                {
                    "doi": f"10.1000/art{s // 2}",
                    "study": f"S{s:02d}",
                    "p": float(p),
                    "tier": "top" if s % 2 == 0 else "other",
                    "open_science": bool(s % 4 < 2),
                    "design": DESIGNS[s % 4],
                }
            )
    return pd.DataFrame(rows)


def make_table(**kwargs) -> pd.DataFrame:
    """Canonical observation table built from ``make_raw_table``."""
    from mcreplicability.core.observations import prepare_observations

    raw = make_raw_table(**kwargs)
    return prepare_observations(
        raw,
        study_col="study",
        p_col="p",
        article_col="doi",
        group_cols=["tier", "open_science", "design"],
    )
