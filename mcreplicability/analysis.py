"""
MCReplicability - Monte Carlo replicability estimation.

This module provides the main ReplicabilityAnalysis class for estimating
ERR, EDR and ARP from a table of extracted p-values.
"""

from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .core import (
    ReplicateRunner,
    ResultsProcessor,
    build_analysis_result,
    build_grouped_result,
    n_studies,
    observed_discovery_rate,
    partition,
    prepare_observations,
    resolve_pairs,
    run_grouped,
)
from .core.observations import P_COL, group_columns
from .errors import ConfigurationError
from .stats.zcurve import ZCurveFitter
from .utils.formatters import _format_results
from .utils.validators import (
    _validate_alpha,
    _validate_ci_bounds,
    _validate_interval_level,
    _validate_numeric_parameter,
    _validate_parallel_settings,
    _validate_repetitions,
    _validate_seed,
)


class ReplicabilityAnalysis:
    """Monte Carlo replicability analysis of a p-value corpus.

    Each replicate draws one p-value per study (dependent p-values collapse
    to one independent draw), optionally bootstraps studies, and fits a
    z-curve model. The resampling pass (no bootstrap) gives point
    estimates; the bootstrap pass gives percentile intervals.

    Configuration methods (``set_*``) validate their input and return
    ``self`` for method chaining.

    Attributes:
        seed: Base random seed (default: 2137).
        alpha: Significance threshold for ODR and the default fitter
            (default: 0.05).
        n_resampling: Replicates of the resampling pass (default: 500).
        n_bootstrap: Replicates of the bootstrap pass (default: 500).
        ci_bounds: Percentile bounds of the intervals
            (default: ``(0.025, 0.975)``).
        parallel: Whether replicates run on a joblib worker pool.
        n_cores: Number of workers when parallel.
        warn_failure_rate: Failure share above which a warning is issued.

    Example:
        >>> analysis = ReplicabilityAnalysis(df, study_col="study", p_col="p",
        ...                                  article_col="doi", group_cols=["tier"])
        >>> analysis.set_repetitions(resampling=1000, bootstrap=1000)
        >>> analysis.estimate()
        >>> analysis.estimate_by_group("tier")
    """

    def __init__(
        self,
        data: pd.DataFrame,
        study_col: str = "study_id",
        p_col: str = "p_value",
        article_col: Optional[str] = None,
        group_cols: Optional[Sequence[str]] = None,
    ):
        """Load the observation table.

        Args:
            data: One row per included p-value.
            study_col: Study identifier column (unit of independence).
            p_col: p-value column.
            article_col: Article identifier column (defaults to the study
                column).
            group_cols: Categorical grouping columns.
        """
        import multiprocessing as mp

        self.seed: int = 2137
        self.alpha = 0.05
        self.n_resampling = 500
        self.n_bootstrap = 500
        self.ci_bounds: Tuple[float, float] = (0.025, 0.975)
        self.parallel = False
        self.n_cores = max(1, (mp.cpu_count() or 1) // 2)
        self.warn_failure_rate = 0.10
        self._fitter = None

        self._table = prepare_observations(
            data,
            study_col=study_col,
            p_col=p_col,
            article_col=article_col,
            group_cols=group_cols,
        )

        n_articles = self._table["article_id"].nunique()
        print(f"Loaded {len(self._table)} p-values from {self.n_studies} studies in {n_articles} articles")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def table(self) -> pd.DataFrame:
        """Copy of the canonical observation table."""
        return self._table.copy()

    @property
    def n_studies(self) -> int:
        return n_studies(self._table)

    @property
    def group_columns(self):
        return group_columns(self._table)

    @property
    def fitter(self):
        """Curve fitter in use (``ZCurveFitter`` at the current alpha by default)."""
        return self._fitter if self._fitter is not None else ZCurveFitter(alpha=self.alpha)

    @property
    def _n_jobs(self) -> int:
        return self.n_cores if self.parallel else 1

    # =========================================================================
    # Configuration methods
    # =========================================================================

    def set_seed(self, seed: int):
        """Set the base random seed.

        Replicate ``i`` of every pass and group draws from ``(seed, i)``,
        so a fixed seed reproduces every distribution exactly.

        Raises:
            ConfigurationError: If *seed* is missing, negative or not an
                integer.
        """
        _validate_seed(seed).raise_if_invalid()
        self.seed = int(seed)
        print(f"Seed set to: {seed}")
        return self

    def set_repetitions(self, resampling: Optional[int] = None, bootstrap: Optional[int] = None):
        """Set replicate counts of the resampling and bootstrap passes.

        Args:
            resampling: Replicates without case bootstrap (point estimates).
            bootstrap: Replicates with case bootstrap (intervals).

        Returns:
            self: For method chaining.
        """
        for value, name in [(resampling, "resampling repetitions"), (bootstrap, "bootstrap repetitions")]:
            if value is None:
                continue
            result = _validate_repetitions(value, name)
            for warning in result.warnings:
                print(f"Warning: {warning}")
            result.raise_if_invalid()

        if resampling is not None:
            self.n_resampling = int(resampling)
        if bootstrap is not None:
            self.n_bootstrap = int(bootstrap)
        return self

    def set_alpha(self, alpha: float):
        """Set the significance threshold used for ODR and the default fitter."""
        _validate_alpha(alpha).raise_if_invalid()
        self.alpha = alpha
        return self

    def set_ci_bounds(self, lower: float = 0.025, upper: float = 0.975):
        """Set percentile bounds of the empirical intervals.

        The ODR interval uses the level ``upper - lower``, which must lie
        strictly between 0 and 1.
        """
        _validate_ci_bounds(lower, upper).raise_if_invalid()
        _validate_interval_level(upper - lower, "ODR interval level (upper - lower)").raise_if_invalid()
        self.ci_bounds = (lower, upper)
        return self

    def set_parallel(self, enable: bool = True, n_cores: Optional[int] = None):
        """Enable or disable parallel replicate execution.

        Args:
            enable: ``True`` runs replicates on a joblib worker pool.
            n_cores: Number of workers. Defaults to ``cpu_count // 2``.

        Returns:
            self: For method chaining.
        """
        if enable is False:
            self.parallel, self.n_cores = False, 1
            return self

        try:
            import joblib  # noqa: F401 — availability check only
        except ImportError:
            print("Warning: joblib not available. Install with: pip install joblib")
            print("Warning: Continuing with sequential processing.")
            self.parallel = False
            return self

        settings, result = _validate_parallel_settings(enable, n_cores)
        result.raise_if_invalid()
        self.parallel, self.n_cores = settings
        return self

    def set_fitter(self, fitter):
        """Replace the curve fitter.

        Args:
            fitter: Object with ``fit(p_values) -> {"ERR": ..., "EDR": ...}``
                raising ``DegenerateFit`` on unusable samples. ``None``
                restores the default ``ZCurveFitter``.
        """
        if fitter is not None and not callable(getattr(fitter, "fit", None)):
            raise ConfigurationError(f"fitter must provide a callable 'fit' method, got {type(fitter).__name__}")
        self._fitter = fitter
        return self

    def set_failure_warning_threshold(self, rate: float):
        """Set the failed-replicate share (0-1) above which a warning is issued."""
        _validate_numeric_parameter(rate, "failure warning threshold", min_val=0, max_val=1).raise_if_invalid()
        self.warn_failure_rate = rate
        return self

    # =========================================================================
    # Analysis
    # =========================================================================

    def _check_settings(self):
        """Re-validate settings before any replicate runs."""
        _validate_seed(self.seed).raise_if_invalid()
        _validate_alpha(self.alpha).raise_if_invalid()
        _validate_ci_bounds(*self.ci_bounds).raise_if_invalid()
        _validate_interval_level(self.ci_bounds[1] - self.ci_bounds[0], "ODR interval level (upper - lower)").raise_if_invalid()

    def _make_reporter(self, progress_callback, print_results: bool, n_groups: int):
        from .progress import PrintReporter, ProgressReporter, compute_total_replicates

        if progress_callback is None:
            effective_cb = PrintReporter() if print_results else None
        elif progress_callback is False:
            effective_cb = None
        else:
            effective_cb = progress_callback

        if effective_cb is None:
            return None
        total = compute_total_replicates(self.n_resampling, self.n_bootstrap, n_groups)
        return ProgressReporter(total, effective_cb)

    def _summarize_table(self, table: pd.DataFrame, resampling, bootstrap) -> Dict[str, Any]:
        processor = ResultsProcessor(self.ci_bounds)
        return build_analysis_result(
            n_observations=len(table),
            n_studies=n_studies(table),
            seed=self.seed,
            repetitions={"resampling": self.n_resampling, "bootstrap": self.n_bootstrap},
            alpha=self.alpha,
            ci_bounds=self.ci_bounds,
            parallel=self.parallel,
            estimates=processor.combine_passes(resampling, bootstrap),
            odr=observed_discovery_rate(table[P_COL], self.alpha, level=self.ci_bounds[1] - self.ci_bounds[0]),
            resampling=resampling,
            bootstrap=bootstrap,
        )

    def estimate(
        self,
        print_results: bool = True,
        return_results: bool = False,
        progress_callback=None,
        cancel_check=None,
    ):
        """Estimate ERR, EDR, ARP and ODR for the whole corpus.

        Args:
            print_results: Print a report.
            return_results: Return the result dictionary.
            progress_callback: Progress reporting control:
                - ``None`` (default): auto-use ``PrintReporter`` when
                  *print_results* is ``True``.
                - ``False``: explicitly disable progress.
                - callable ``(current, total)``: custom callback.
            cancel_check: Optional callable returning ``True`` to abort.

        Returns:
            dict or None: If *return_results* is ``True``, a dictionary with
            keys ``"model"`` (settings), ``"results"`` (per-metric estimate
            and interval, ODR, failure diagnostics) and ``"distributions"``
            (the two ``EstimateDistribution`` objects).
        """
        self._check_settings()
        fitter = self.fitter
        reporter = self._make_reporter(progress_callback, print_results, 1)
        if reporter is not None:
            reporter.start()

        distributions = {}
        for pass_name, repetitions, bootstrap in [
            ("resampling", self.n_resampling, False),
            ("bootstrap", self.n_bootstrap, True),
        ]:
            runner = ReplicateRunner(repetitions, self.seed, n_jobs=self._n_jobs, warn_failure_rate=self.warn_failure_rate)
            distributions[pass_name] = runner.run(
                self._table,
                fitter,
                bootstrap=bootstrap,
                label="overall",
                progress=reporter,
                cancel_check=cancel_check,
            )

        if reporter is not None:
            reporter.finish()

        result = self._summarize_table(self._table, distributions["resampling"], distributions["bootstrap"])
        result["distributions"] = distributions

        if print_results:
            print(f"\n{'=' * 80}")
            print("MONTE CARLO REPLICABILITY ESTIMATES")
            print(f"{'=' * 80}")
            print(_format_results("overall", result))

        return result if return_results else None

    def estimate_by_group(
        self,
        group_key: str,
        hierarchy: Optional[Mapping[str, Sequence[str]]] = None,
        levels: Optional[Sequence] = None,
        pairs: Optional[Sequence[Tuple[Any, Any]]] = None,
        allow_partial: bool = True,
        print_results: bool = True,
        return_results: bool = False,
        progress_callback=None,
        cancel_check=None,
    ):
        """Estimate per group and contrast groups pairwise.

        Args:
            group_key: Grouping column passed in ``group_cols``.
            hierarchy: Optional ``{coarse: [fine, ...]}`` mapping that
                collapses categories before grouping.
            levels: Labels to analyse, in reporting order.
            pairs: ``(a, b)`` label pairs to contrast as ``a - b``.
                Defaults to all pairs.
            allow_partial: Pair only replicates that succeeded in both
                groups. When ``False``, differing failures raise
                ``MismatchedContrastError``.
            print_results: Print a report.
            return_results: Return the result dictionary.
            progress_callback: See ``estimate``.
            cancel_check: Optional callable returning ``True`` to abort.

        Returns:
            dict or None: If *return_results* is ``True``, a dictionary with
            keys ``"model"``, ``"groups"`` (per-group results as in
            ``estimate``), ``"contrasts"`` (``"a - b"`` to per-metric delta
            summaries) and ``"distributions"``.

        Raises:
            ConfigurationError: Unknown grouping column or labels.
            EmptyGroupError: A requested group has no studies.
        """
        self._check_settings()
        if group_key not in self.group_columns:
            raise ConfigurationError(
                f"'{group_key}' is not a grouping column. Available: {', '.join(self.group_columns) or 'none'}"
            )

        group_partition = partition(self._table, group_key, hierarchy=hierarchy, levels=levels)
        pairs = resolve_pairs(group_partition.labels, pairs)
        fitter = self.fitter
        reporter = self._make_reporter(progress_callback, print_results, len(group_partition))
        if reporter is not None:
            reporter.start()

        resampling = run_grouped(
            group_partition, self.n_resampling, False, self.seed, fitter,
            n_jobs=self._n_jobs, warn_failure_rate=self.warn_failure_rate,
            progress=reporter, cancel_check=cancel_check,
        )
        bootstrap = run_grouped(
            group_partition, self.n_bootstrap, True, self.seed, fitter,
            n_jobs=self._n_jobs, warn_failure_rate=self.warn_failure_rate,
            progress=reporter, cancel_check=cancel_check,
        )

        if reporter is not None:
            reporter.finish()

        group_results = {
            label: self._summarize_table(group_partition[label], resampling[label], bootstrap[label])
            for label in group_partition.labels
        }

        processor = ResultsProcessor(self.ci_bounds)
        contrasts = {
            f"{a} - {b}": processor.contrast_summary(
                (resampling[a], resampling[b]),
                (bootstrap[a], bootstrap[b]),
                allow_partial=allow_partial,
            )
            for a, b in pairs
        }

        result = build_grouped_result(
            group_key=group_key,
            labels=group_partition.labels,
            model_info={
                "seed": self.seed,
                "repetitions": {"resampling": self.n_resampling, "bootstrap": self.n_bootstrap},
                "alpha": self.alpha,
                "ci_bounds": self.ci_bounds,
                "parallel": self.parallel,
            },
            group_results=group_results,
            contrasts=contrasts,
            hierarchy=hierarchy,
        )
        result["distributions"] = {"resampling": resampling, "bootstrap": bootstrap}

        if print_results:
            print(f"\n{'=' * 80}")
            print("MONTE CARLO REPLICABILITY ESTIMATES BY GROUP")
            print(f"{'=' * 80}")
            print(_format_results("grouped", result))

        return result if return_results else None

    def __repr__(self):
        return f"ReplicabilityAnalysis(n_observations={len(self._table)}, n_studies={self.n_studies})"
