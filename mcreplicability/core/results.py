"""
Results processing for MCReplicability.

Reduces estimate distributions to point estimates and empirical
percentile intervals, computes paired contrasts between groups, and
builds the result dictionaries handed to reporting.
"""

import warnings
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.stats import norm

from ..errors import MismatchedContrastError
from ..utils.validators import _validate_alpha, _validate_ci_bounds, _validate_interval_level
from .replicate import METRICS
from .simulation import EstimateDistribution

DEFAULT_CI_BOUNDS = (0.025, 0.975)


@dataclass(frozen=True)
class Summary:
    """Central estimate and percentile interval of a distribution."""

    mean: float
    ci_lower: float
    ci_upper: float
    n: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def summarize(values, bounds: Tuple[float, float] = DEFAULT_CI_BOUNDS) -> Summary:
    """Mean and empirical percentile interval of ``values``.

    NaN entries are ignored. An empty input yields NaN summaries with
    ``n == 0``.
    """
    _validate_ci_bounds(*bounds).raise_if_invalid()

    arr = np.asarray(values, dtype=float)
    arr = arr[~np.isnan(arr)]
    if arr.size == 0:
        return Summary(np.nan, np.nan, np.nan, 0)

    lower, upper = np.quantile(arr, bounds)
    return Summary(float(np.mean(arr)), float(lower), float(upper), int(arr.size))


def _matched_indices(
    dist_a: EstimateDistribution,
    dist_b: EstimateDistribution,
    allow_partial: bool,
) -> np.ndarray:
    """Replicate indices shared by two distributions, warning once when some are dropped."""
    if dist_a.repetitions != dist_b.repetitions:
        raise MismatchedContrastError(
            f"Cannot pair distributions from {dist_a.repetitions} and {dist_b.repetitions} repetitions"
        )

    idx_a, idx_b = dist_a.indices, dist_b.indices
    if not allow_partial:
        if len(idx_a) != len(idx_b) or not np.array_equal(idx_a, idx_b):
            raise MismatchedContrastError(
                f"Replicate indices differ between '{dist_a.label}' ({len(idx_a)} used) "
                f"and '{dist_b.label}' ({len(idx_b)} used)"
            )
        return idx_a

    common = np.intersect1d(idx_a, idx_b)
    n_dropped = len(np.union1d(idx_a, idx_b)) - len(common)
    if n_dropped:
        warnings.warn(
            f"Contrast '{dist_a.label}' - '{dist_b.label}' uses {len(common)} matched replicates; "
            f"{n_dropped} replicate(s) failed in one of the groups",
            stacklevel=3,
        )
    return common


def _paired_deltas(dist_a: EstimateDistribution, dist_b: EstimateDistribution, indices: np.ndarray, metric: str) -> np.ndarray:
    if np.array_equal(indices, dist_a.indices) and np.array_equal(indices, dist_b.indices):
        return dist_a.values(metric) - dist_b.values(metric)
    values_a = dict(zip(dist_a.indices.tolist(), dist_a.values(metric).tolist(), strict=True))
    values_b = dict(zip(dist_b.indices.tolist(), dist_b.values(metric).tolist(), strict=True))
    return np.array([values_a[i] - values_b[i] for i in indices.tolist()], dtype=float)


def contrast(
    dist_a: EstimateDistribution,
    dist_b: EstimateDistribution,
    metric: str = "arp",
    allow_partial: bool = False,
) -> Tuple[np.ndarray, np.ndarray]:
    """Paired differences ``a - b`` matched by replicate index.

    Args:
        dist_a: First distribution.
        dist_b: Second distribution.
        metric: ``"err"``, ``"edr"`` or ``"arp"``.
        allow_partial: Compare only indices present in both distributions
            when their failed replicates differ. When ``False`` such a
            mismatch raises.

    Returns:
        Tuple ``(indices, deltas)``.

    Raises:
        MismatchedContrastError: Distributions of different length or
            with non-corresponding indices.
    """
    indices = _matched_indices(dist_a, dist_b, allow_partial)
    return indices, _paired_deltas(dist_a, dist_b, indices, metric)


def observed_discovery_rate(p_values, alpha: float = 0.05, level: float = 0.95) -> Summary:
    """Observed discovery rate with a normal-approximation interval.

    Computed on the full table of (dependent) p-values without resampling;
    the interval is clipped to [0, 1].
    """
    _validate_alpha(alpha).raise_if_invalid()
    _validate_interval_level(level).raise_if_invalid()

    p = np.asarray(p_values, dtype=float)
    p = p[~np.isnan(p)]
    n = p.size
    if n == 0:
        return Summary(np.nan, np.nan, np.nan, 0)

    odr = float(np.mean(p < alpha))
    z = float(norm.ppf(1 - (1 - level) / 2))
    half_width = z * np.sqrt(odr * (1 - odr) / n)
    return Summary(odr, float(max(0.0, odr - half_width)), float(min(1.0, odr + half_width)), n)


class ResultsProcessor:
    """Converts estimate distributions into reported statistics.

    Point estimates come from the resampling pass (mean over replicates);
    intervals come from the bootstrap pass (empirical percentiles).
    """

    def __init__(self, ci_bounds: Tuple[float, float] = DEFAULT_CI_BOUNDS):
        _validate_ci_bounds(*ci_bounds).raise_if_invalid()
        self.ci_bounds = tuple(ci_bounds)

    def summarize_distribution(self, distribution: EstimateDistribution) -> Dict[str, Any]:
        """Per-metric summaries of one pass plus failure diagnostics."""
        out: Dict[str, Any] = {metric: summarize(distribution.values(metric), self.ci_bounds) for metric in METRICS}
        out["diagnostics"] = diagnostics(distribution)
        return out

    def combine_passes(
        self,
        resampling: EstimateDistribution,
        bootstrap: EstimateDistribution,
    ) -> Dict[str, Dict[str, float]]:
        """Estimate from the resampling pass, interval from the bootstrap pass."""
        combined = {}
        for metric in METRICS:
            point = summarize(resampling.values(metric), self.ci_bounds)
            interval = summarize(bootstrap.values(metric), self.ci_bounds)
            combined[metric] = {
                "estimate": point.mean,
                "ci_lower": interval.ci_lower,
                "ci_upper": interval.ci_upper,
            }
        return combined

    def contrast_summary(
        self,
        resampling: Tuple[EstimateDistribution, EstimateDistribution],
        bootstrap: Tuple[EstimateDistribution, EstimateDistribution],
        allow_partial: bool = False,
    ) -> Dict[str, Dict[str, float]]:
        """Summaries of paired deltas for every metric.

        The delta estimate is the mean resampling-pass delta; its interval
        comes from the bootstrap-pass deltas.
        """
        point_indices = _matched_indices(*resampling, allow_partial)
        boot_indices = _matched_indices(*bootstrap, allow_partial)
        out = {}
        for metric in METRICS:
            point_deltas = _paired_deltas(*resampling, point_indices, metric)
            boot_deltas = _paired_deltas(*bootstrap, boot_indices, metric)
            point = summarize(point_deltas, self.ci_bounds)
            interval = summarize(boot_deltas, self.ci_bounds)
            out[metric] = {
                "estimate": point.mean,
                "ci_lower": interval.ci_lower,
                "ci_upper": interval.ci_upper,
                "n_pairs": interval.n,
            }
        return out


def diagnostics(distribution: EstimateDistribution) -> Dict[str, Any]:
    """Failure counts of one pass."""
    return {
        "repetitions": distribution.repetitions,
        "n_used": distribution.n_used,
        "n_failed": distribution.n_failed,
        "failure_rate": distribution.failure_rate,
        "failure_reasons": distribution.failure_reasons,
    }


def build_analysis_result(
    n_observations: int,
    n_studies: int,
    seed: int,
    repetitions: Dict[str, int],
    alpha: float,
    ci_bounds: Tuple[float, float],
    parallel: bool,
    estimates: Dict[str, Dict[str, float]],
    odr: Summary,
    resampling: EstimateDistribution,
    bootstrap: EstimateDistribution,
) -> Dict[str, Any]:
    """Build the result dictionary of an overall analysis.

    Args:
        n_observations: Number of p-values in the table.
        n_studies: Number of distinct studies.
        seed: Base random seed.
        repetitions: ``{"resampling": ..., "bootstrap": ...}``.
        alpha: Significance threshold.
        ci_bounds: Percentile bounds used for the intervals.
        parallel: Whether parallel processing was used.
        estimates: Output of ``ResultsProcessor.combine_passes``.
        odr: Observed discovery rate summary.
        resampling: Resampling-pass distribution.
        bootstrap: Bootstrap-pass distribution.

    Returns:
        Complete result dictionary
    """
    return {
        "model": {
            "n_observations": n_observations,
            "n_studies": n_studies,
            "seed": seed,
            "repetitions": dict(repetitions),
            "alpha": alpha,
            "ci_bounds": tuple(ci_bounds),
            "parallel": parallel,
        },
        "results": {
            **estimates,
            "odr": odr.to_dict(),
            "diagnostics": {
                "resampling": diagnostics(resampling),
                "bootstrap": diagnostics(bootstrap),
            },
        },
    }


def build_grouped_result(
    group_key: str,
    labels: List[str],
    model_info: Dict[str, Any],
    group_results: Dict[str, Dict[str, Any]],
    contrasts: Dict[str, Dict[str, Dict[str, float]]],
    hierarchy: Optional[Dict[str, Sequence[str]]] = None,
) -> Dict[str, Any]:
    """Build the result dictionary of a subgroup analysis."""
    return {
        "model": {
            **model_info,
            "group_key": group_key,
            "groups": list(labels),
            "hierarchy": {k: list(v) for k, v in hierarchy.items()} if hierarchy else None,
        },
        "groups": group_results,
        "contrasts": contrasts,
    }
