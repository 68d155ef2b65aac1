"""MCReplicability - Monte Carlo replicability estimation.

Estimates the expected replication rate (ERR), expected discovery rate
(EDR) and their average (ARP) from p-values extracted from published
articles. Dependent p-values are collapsed to one draw per study in every
replicate, a z-curve model is fitted, and a case bootstrap over studies
yields percentile intervals, overall and per subgroup.

Example:
    >>> from mcreplicability import ReplicabilityAnalysis
    >>>
    >>> analysis = ReplicabilityAnalysis(df, study_col="study", p_col="p", group_cols=["tier"])
    >>> analysis.set_repetitions(resampling=1000, bootstrap=1000)
    >>> analysis.estimate()
    >>>
    >>> analysis.estimate_by_group("tier")
"""

from importlib.metadata import version as _get_version

from .analysis import ReplicabilityAnalysis
from .errors import (
    AnalysisCancelled,
    ConfigurationError,
    DegenerateFit,
    EmptyGroupError,
    MismatchedContrastError,
    ReplicabilityError,
)
from .progress import PrintReporter, ProgressReporter, TqdmReporter
from .stats.conversions import p_from_d, p_from_r
from .stats.zcurve import CurveFitter, ZCurveFitter

__version__ = _get_version("MCReplicability")

__all__ = [
    "ReplicabilityAnalysis",
    "ZCurveFitter",
    "CurveFitter",
    "p_from_d",
    "p_from_r",
    "ReplicabilityError",
    "DegenerateFit",
    "ConfigurationError",
    "EmptyGroupError",
    "MismatchedContrastError",
    "AnalysisCancelled",
    "ProgressReporter",
    "PrintReporter",
    "TqdmReporter",
]
