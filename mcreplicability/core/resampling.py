"""
Two-stage sampling for MCReplicability.

Stage 1 collapses dependent p-values: one row is drawn per study.
Stage 2 (optional) is a case bootstrap over the resulting studies. The
stages are always applied in this order.
"""

import numpy as np
import pandas as pd

from .observations import STUDY_COL


class DependencyResolver:
    """Draws one observation per study from a fixed source table.

    Study codes are computed once; each ``resolve`` call only consumes the
    generator it is given and never modifies the source table.

    Args:
        table: Canonical observation table (see ``prepare_observations``).
    """

    def __init__(self, table: pd.DataFrame):
        self.table = table
        codes, uniques = pd.factorize(table[STUDY_COL])
        self._codes = codes
        self.n_studies = len(uniques)

    def resolve(self, rng: np.random.Generator) -> pd.DataFrame:
        """Select one row per study uniformly at random.

        Returns:
            Independent sample with one row per study, ordered by first
            appearance of the study in the source table.
        """
        keys = rng.random(len(self._codes))
        order = np.lexsort((keys, self._codes))
        sorted_codes = self._codes[order]
        # Last row of each code block carries the largest key
        is_last = np.append(sorted_codes[1:] != sorted_codes[:-1], True)
        chosen = order[is_last]
        return self.table.iloc[chosen].reset_index(drop=True)


def resolve_dependencies(table: pd.DataFrame, rng: np.random.Generator) -> pd.DataFrame:
    """Draw one observation per study from ``table``."""
    return DependencyResolver(table).resolve(rng)


def bootstrap_studies(sample: pd.DataFrame, rng: np.random.Generator) -> pd.DataFrame:
    """Resample an independent sample with replacement to its own size."""
    n = len(sample)
    if n == 0:
        return sample.copy()
    indices = rng.integers(0, n, size=n)
    return sample.iloc[indices].reset_index(drop=True)
