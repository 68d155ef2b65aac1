"""Core components for the MCReplicability framework.

Re-exports the resampling engine building blocks:

- ``prepare_observations`` — canonical observation table.
- ``DependencyResolver``, ``resolve_dependencies``, ``bootstrap_studies``
  — the two sampling stages.
- ``ReplicateEstimator``, ``ReplicateResult``, ``ReplicateFailure`` — one
  Monte Carlo replicate.
- ``ReplicateRunner``, ``EstimateDistribution`` — the replicate loop.
- ``GroupPartition``, ``partition``, ``run_grouped``,
  ``pairwise_contrasts``, ``resolve_pairs`` — subgroup analyses.
- ``ResultsProcessor``, ``summarize``, ``contrast``,
  ``observed_discovery_rate`` — reported statistics.
"""

from .observations import n_studies, prepare_observations
from .replicate import ReplicateEstimator, ReplicateFailure, ReplicateResult
from .resampling import DependencyResolver, bootstrap_studies, resolve_dependencies
from .results import (
    ResultsProcessor,
    Summary,
    build_analysis_result,
    build_grouped_result,
    contrast,
    observed_discovery_rate,
    summarize,
)
from .simulation import EstimateDistribution, ReplicateRunner
from .subgroups import GroupPartition, pairwise_contrasts, partition, resolve_pairs, run_grouped

__all__ = [
    # Observations
    "prepare_observations",
    "n_studies",
    # Sampling
    "DependencyResolver",
    "resolve_dependencies",
    "bootstrap_studies",
    # Replicates
    "ReplicateEstimator",
    "ReplicateResult",
    "ReplicateFailure",
    "ReplicateRunner",
    "EstimateDistribution",
    # Subgroups
    "GroupPartition",
    "partition",
    "run_grouped",
    "pairwise_contrasts",
    "resolve_pairs",
    # Results
    "ResultsProcessor",
    "Summary",
    "summarize",
    "contrast",
    "observed_discovery_rate",
    "build_analysis_result",
    "build_grouped_result",
]
