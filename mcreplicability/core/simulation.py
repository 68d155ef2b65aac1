"""
Monte Carlo replicate execution for MCReplicability.

Runs the replicate estimator many times and gathers the estimate
distribution. Replicate ``i`` always draws from a generator seeded with
``(seed, i, stream)``, so the distribution does not depend on execution
order or on the number of workers.
"""

import warnings
from collections import Counter
from typing import Callable, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from ..errors import AnalysisCancelled
from ..utils.validators import _validate_repetitions, _validate_seed
from .replicate import METRICS, ReplicateEstimator, ReplicateFailure, ReplicateOutcome, ReplicateResult

RESAMPLING_STREAM = 0
BOOTSTRAP_STREAM = 1


def _replicate_rng(seed: int, index: int, bootstrap: bool) -> np.random.Generator:
    """Generator private to one replicate of one pass."""
    stream = BOOTSTRAP_STREAM if bootstrap else RESAMPLING_STREAM
    return np.random.default_rng([int(seed), int(index), stream])


def _run_chunk(estimator: ReplicateEstimator, seed: int, indices: Iterable[int], bootstrap: bool) -> List[ReplicateOutcome]:
    """Estimate a block of replicates (unit of work for a worker)."""
    return [estimator.estimate(_replicate_rng(seed, i, bootstrap), bootstrap, i) for i in indices]


class EstimateDistribution:
    """Ordered replicate results of one Monte Carlo pass.

    Successful results are kept in replicate-index order; failed replicates
    are kept separately so they never enter the aggregate statistics.

    Attributes:
        results: Successful ``ReplicateResult`` objects, sorted by index.
        failures: ``ReplicateFailure`` markers, sorted by index.
        repetitions: Number of replicates requested.
        bootstrap: Whether studies were bootstrapped in this pass.
        label: Optional name (group label) used in diagnostics.
    """

    def __init__(
        self,
        results: List[ReplicateResult],
        failures: List[ReplicateFailure],
        repetitions: int,
        bootstrap: bool = False,
        label: Optional[str] = None,
    ):
        self.results = sorted(results, key=lambda r: r.index)
        self.failures = sorted(failures, key=lambda f: f.index)
        self.repetitions = repetitions
        self.bootstrap = bootstrap
        self.label = label

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    def __getitem__(self, position: int) -> ReplicateResult:
        return self.results[position]

    @property
    def indices(self) -> np.ndarray:
        return np.array([r.index for r in self.results], dtype=int)

    @property
    def n_used(self) -> int:
        return len(self.results)

    @property
    def n_failed(self) -> int:
        return len(self.failures)

    @property
    def failure_rate(self) -> float:
        return self.n_failed / self.repetitions if self.repetitions else 0.0

    @property
    def failure_reasons(self) -> Dict[str, int]:
        return dict(Counter(f.reason for f in self.failures))

    def values(self, metric: str) -> np.ndarray:
        """Array of one metric (``"err"``, ``"edr"`` or ``"arp"``) in index order."""
        metric = metric.lower()
        if metric not in METRICS:
            raise KeyError(f"Unknown metric '{metric}'. Valid metrics: {', '.join(METRICS)}")
        return np.array([r.get(metric) for r in self.results], dtype=float)

    def by_index(self) -> Dict[int, ReplicateResult]:
        return {r.index: r for r in self.results}

    def to_frame(self) -> pd.DataFrame:
        """One row per successful replicate."""
        return pd.DataFrame(
            {
                "index": self.indices,
                "err": self.values("err"),
                "edr": self.values("edr"),
                "arp": self.values("arp"),
            }
        )

    def __repr__(self):
        name = f"'{self.label}', " if self.label is not None else ""
        return f"EstimateDistribution({name}n_used={self.n_used}, n_failed={self.n_failed}, bootstrap={self.bootstrap})"


class ReplicateRunner:
    """Executes Monte Carlo replicates of the replicability estimator.

    Each replicate resolves dependent p-values, optionally bootstraps
    studies, and fits the curve model. Failed fits are tracked and a
    warning is issued when the failure share exceeds the configured
    threshold; they never abort the run.
    """

    def __init__(
        self,
        repetitions: int,
        seed: int,
        n_jobs: int = 1,
        warn_failure_rate: float = 0.10,
        chunk_size: Optional[int] = None,
    ):
        """Initialise the runner.

        Args:
            repetitions: Number of Monte Carlo replicates.
            seed: Base random seed. Replicate ``i`` uses
                ``default_rng([seed, i, stream])``.
            n_jobs: Number of joblib workers; 1 runs sequentially.
            warn_failure_rate: Failure share (0-1) above which a warning
                is issued.
            chunk_size: Replicates per worker task. Defaults to spreading
                the run over about four tasks per worker.

        Raises:
            ConfigurationError: Non-positive or non-integer repetitions,
                or a missing or negative seed.
        """
        _validate_repetitions(repetitions).raise_if_invalid()
        _validate_seed(seed).raise_if_invalid()
        self.repetitions = repetitions
        self.seed = seed
        self.n_jobs = n_jobs
        self.warn_failure_rate = warn_failure_rate
        self.chunk_size = chunk_size

    def _chunks(self) -> List[range]:
        size = self.chunk_size or max(1, -(-self.repetitions // (4 * max(1, self.n_jobs))))
        return [range(start, min(start + size, self.repetitions)) for start in range(0, self.repetitions, size)]

    def run(
        self,
        table: pd.DataFrame,
        fitter,
        bootstrap: bool = False,
        label: Optional[str] = None,
        progress=None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> EstimateDistribution:
        """Run the full replicate loop.

        Args:
            table: Canonical observation table (read-only).
            fitter: Curve fitter.
            bootstrap: Apply the case bootstrap after dependency resolution.
            label: Name used in warnings (e.g. a group label).
            progress: Optional ``ProgressReporter`` (advanced by 1 per
                replicate).
            cancel_check: Optional callable returning ``True`` to abort.

        Returns:
            ``EstimateDistribution`` with results in replicate-index order.
        """
        estimator = ReplicateEstimator(table, fitter)

        if self.n_jobs > 1 and self.repetitions > 1:
            outcomes = self._run_parallel(estimator, bootstrap, progress, cancel_check)
        else:
            outcomes = self._run_sequential(estimator, bootstrap, progress, cancel_check)

        results = [o for o in outcomes if isinstance(o, ReplicateResult)]
        failures = [o for o in outcomes if isinstance(o, ReplicateFailure)]
        distribution = EstimateDistribution(results, failures, self.repetitions, bootstrap=bootstrap, label=label)

        self._warn_failures(distribution)
        return distribution

    def _run_sequential(self, estimator, bootstrap, progress, cancel_check, indices=None) -> List[ReplicateOutcome]:
        indices = range(self.repetitions) if indices is None else indices
        outcomes = []
        for index in indices:
            if cancel_check is not None and cancel_check():
                raise AnalysisCancelled("Analysis cancelled by user")

            outcomes.extend(_run_chunk(estimator, self.seed, [index], bootstrap))

            if progress is not None:
                progress.advance(1)
        return outcomes

    def _run_parallel(self, estimator, bootstrap, progress, cancel_check) -> List[ReplicateOutcome]:
        from joblib import Parallel, delayed

        chunks = self._chunks()
        outcomes = []
        n_done = 0
        try:
            chunk_outcomes = Parallel(
                n_jobs=self.n_jobs,
                backend="loky",
                verbose=0,
                return_as="generator",
            )(delayed(_run_chunk)(estimator, self.seed, chunk, bootstrap) for chunk in chunks)

            for chunk, chunk_result in zip(chunks, chunk_outcomes, strict=True):
                if cancel_check is not None and cancel_check():
                    raise AnalysisCancelled("Analysis cancelled by user")
                outcomes.extend(chunk_result)
                n_done += 1
                if progress is not None:
                    progress.advance(len(chunk))
        except AnalysisCancelled:
            raise
        except Exception as e:
            print(f"Warning: Parallel execution failed ({e}). Falling back to sequential.")
            # Chunks already gathered are kept and counted once
            remaining = [i for chunk in chunks[n_done:] for i in chunk]
            return outcomes + self._run_sequential(estimator, bootstrap, progress, cancel_check, indices=remaining)

        return outcomes

    def _warn_failures(self, distribution: EstimateDistribution) -> None:
        n_failed = distribution.n_failed
        if n_failed == 0:
            return

        where = f" for '{distribution.label}'" if distribution.label is not None else ""
        failed_pct = distribution.failure_rate
        if distribution.n_used == 0:
            warnings.warn(f"All {self.repetitions} replicates failed{where}; estimates are undefined", stacklevel=3)
        elif failed_pct > self.warn_failure_rate:
            warnings.warn(
                f"{n_failed}/{self.repetitions} replicates failed{where} ({failed_pct:.1%}). "
                f"Estimates rest on fewer replicates - check group size and number of significant p-values.",
                stacklevel=3,
            )
