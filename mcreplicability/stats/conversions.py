"""Conversions from reported effect sizes to two-sided p-values.

Used when an article reports an effect size and sample size but no exact
p-value. Both functions accept scalars or numpy arrays.
"""

import numpy as np
from scipy.stats import t as t_dist


def p_from_d(d, n1, n2):
    """Two-sided p-value of an independent-samples t-test from Cohen's d.

    Uses the equal-group approximation ``t = d * sqrt(n1 + n2) / 2`` with
    ``n1 + n2 - 2`` degrees of freedom.

    Args:
        d: Cohen's d.
        n1: Size of the first group.
        n2: Size of the second group.

    Returns:
        Two-sided p-value (float or array).
    """
    d = np.asarray(d, dtype=float)
    n = np.asarray(n1, dtype=float) + np.asarray(n2, dtype=float)
    if np.any(n <= 2):
        raise ValueError("n1 + n2 must be greater than 2")

    t_stat = 0.5 * d * np.sqrt(n)
    p = 2 * t_dist.sf(np.abs(t_stat), n - 2)
    return float(p) if np.ndim(p) == 0 else p


def p_from_r(r, n):
    """Two-sided p-value for a Pearson correlation ``r`` on ``n`` pairs."""
    r = np.asarray(r, dtype=float)
    n = np.asarray(n, dtype=float)
    if np.any(n <= 2):
        raise ValueError("n must be greater than 2")
    if np.any(np.abs(r) >= 1):
        raise ValueError("|r| must be less than 1")

    t_stat = r * np.sqrt(n - 2) / np.sqrt(1 - r**2)
    p = 2 * t_dist.sf(np.abs(t_stat), n - 2)
    return float(p) if np.ndim(p) == 0 else p
