"""
Tests for the ReplicabilityAnalysis class.
"""

import numpy as np
import pytest

from tests.config import N_REPS_CHECK, N_REPS_GROUPED, N_REPS_STANDARD, SEED
from tests.helpers.fitters import EveryThirdFails, MeanFitter

GROUP_COLS = ["tier", "open_science", "design"]


@pytest.fixture
def analysis(raw_table, suppress_output):
    from mcreplicability import ReplicabilityAnalysis

    a = ReplicabilityAnalysis(raw_table, study_col="study", p_col="p", article_col="doi", group_cols=GROUP_COLS)
    a.set_seed(SEED).set_repetitions(resampling=N_REPS_CHECK, bootstrap=N_REPS_CHECK).set_fitter(MeanFitter())
    return a


class TestInit:
    """Test ReplicabilityAnalysis initialization."""

    def test_default_values(self, raw_table, suppress_output):
        from mcreplicability import ReplicabilityAnalysis, ZCurveFitter

        a = ReplicabilityAnalysis(raw_table, study_col="study", p_col="p")
        assert a.seed == 2137
        assert a.alpha == 0.05
        assert a.n_resampling == 500
        assert a.n_bootstrap == 500
        assert a.ci_bounds == (0.025, 0.975)
        assert a.parallel is False
        assert isinstance(a.fitter, ZCurveFitter)

    def test_load_message(self, raw_table, capsys):
        from mcreplicability import ReplicabilityAnalysis

        ReplicabilityAnalysis(raw_table, study_col="study", p_col="p", article_col="doi")
        out = capsys.readouterr().out
        assert f"Loaded {len(raw_table)} p-values from 20 studies in 10 articles" in out

    def test_table_is_a_copy(self, analysis):
        t = analysis.table
        t.loc[0, "p_value"] = 0.999
        assert analysis.table.loc[0, "p_value"] != 0.999

    def test_group_columns(self, analysis):
        assert analysis.group_columns == GROUP_COLS
        assert analysis.n_studies == 20
        assert "n_studies=20" in repr(analysis)


class TestSetMethods:
    """Test set_* validation and chaining."""

    def test_chaining(self, analysis):
        assert analysis.set_alpha(0.01).set_ci_bounds(0.05, 0.95) is analysis
        assert analysis.alpha == 0.01
        assert analysis.ci_bounds == (0.05, 0.95)

    def test_seed_required(self, analysis):
        from mcreplicability import ConfigurationError

        with pytest.raises(ConfigurationError, match="seed is required"):
            analysis.set_seed(None)

    @pytest.mark.parametrize("kwargs", [{"resampling": 0}, {"bootstrap": -1}, {"resampling": 2.5}])
    def test_invalid_repetitions(self, analysis, kwargs):
        from mcreplicability import ConfigurationError

        with pytest.raises(ConfigurationError):
            analysis.set_repetitions(**kwargs)

    def test_repetitions_partial_update(self, analysis):
        analysis.set_repetitions(bootstrap=250)
        assert analysis.n_resampling == N_REPS_CHECK
        assert analysis.n_bootstrap == 250

    def test_invalid_alpha(self, analysis):
        from mcreplicability import ConfigurationError

        with pytest.raises(ConfigurationError):
            analysis.set_alpha(1.0)

    def test_invalid_ci_bounds(self, analysis):
        from mcreplicability import ConfigurationError

        with pytest.raises(ConfigurationError):
            analysis.set_ci_bounds(0.975, 0.025)

    @pytest.mark.parametrize("bounds", [(0, 1), (0.0, 1.0)])
    def test_full_width_ci_bounds_rejected(self, analysis, bounds):
        from mcreplicability import ConfigurationError

        before = analysis.ci_bounds
        with pytest.raises(ConfigurationError, match="ODR interval level"):
            analysis.set_ci_bounds(*bounds)
        assert analysis.ci_bounds == before

    def test_narrow_ci_bounds_accepted(self, analysis):
        analysis.set_ci_bounds(0.1, 0.9)
        assert analysis.ci_bounds == (0.1, 0.9)

    def test_default_fitter_follows_alpha(self, analysis):
        analysis.set_fitter(None).set_alpha(0.01)
        assert analysis.fitter.alpha == 0.01

    def test_fitter_needs_fit_method(self, analysis):
        from mcreplicability import ConfigurationError

        with pytest.raises(ConfigurationError, match="fit"):
            analysis.set_fitter(object())

    def test_parallel_disable(self, analysis):
        analysis.set_parallel(False)
        assert analysis.parallel is False
        assert analysis._n_jobs == 1

    def test_failure_threshold(self, analysis):
        from mcreplicability import ConfigurationError

        analysis.set_failure_warning_threshold(0.5)
        assert analysis.warn_failure_rate == 0.5
        with pytest.raises(ConfigurationError):
            analysis.set_failure_warning_threshold(1.5)


class TestEstimate:
    """Test the overall estimate."""

    def test_result_structure(self, analysis):
        result = analysis.estimate(return_results=True)

        assert result["model"]["n_studies"] == 20
        assert result["model"]["repetitions"] == {"resampling": N_REPS_CHECK, "bootstrap": N_REPS_CHECK}
        for metric in ("err", "edr", "arp"):
            est = result["results"][metric]
            assert est["ci_lower"] <= est["ci_upper"]
        assert 0.0 <= result["results"]["odr"]["mean"] <= 1.0
        assert result["results"]["diagnostics"]["resampling"]["n_used"] == N_REPS_CHECK
        assert len(result["distributions"]["bootstrap"]) == N_REPS_CHECK

    def test_no_return_by_default(self, analysis):
        assert analysis.estimate() is None

    def test_estimate_is_mean_of_resampling_pass(self, analysis):
        result = analysis.estimate(return_results=True)
        arps = result["distributions"]["resampling"].values("arp")
        assert result["results"]["arp"]["estimate"] == pytest.approx(np.mean(arps))

    def test_deterministic(self, analysis):
        analysis.set_repetitions(resampling=N_REPS_STANDARD, bootstrap=N_REPS_STANDARD)
        a = analysis.estimate(return_results=True)
        b = analysis.estimate(return_results=True)
        assert a["results"]["arp"] == b["results"]["arp"]
        assert np.array_equal(a["distributions"]["bootstrap"].values("err"), b["distributions"]["bootstrap"].values("err"))

    def test_seed_changes_result(self, analysis):
        a = analysis.estimate(return_results=True)
        b = analysis.set_seed(SEED + 1).estimate(return_results=True)
        assert not np.array_equal(a["distributions"]["resampling"].values("arp"), b["distributions"]["resampling"].values("arp"))

    def test_failures_reported(self, analysis):
        analysis.set_fitter(EveryThirdFails())
        with pytest.warns(UserWarning, match="replicates failed"):
            result = analysis.estimate(return_results=True)
        diag = result["results"]["diagnostics"]["resampling"]
        assert diag["n_failed"] == N_REPS_CHECK // 3
        assert diag["failure_reasons"] == {"scheduled failure": N_REPS_CHECK // 3}

    def test_progress_callback(self, analysis):
        calls = []
        analysis.estimate(progress_callback=lambda cur, tot: calls.append((cur, tot)))
        assert calls[0] == (0, 2 * N_REPS_CHECK)
        assert calls[-1] == (2 * N_REPS_CHECK, 2 * N_REPS_CHECK)

    def test_cancel(self, analysis):
        from mcreplicability import AnalysisCancelled

        with pytest.raises(AnalysisCancelled):
            analysis.estimate(cancel_check=lambda: True)

    def test_invalid_settings_rejected_before_any_replicate(self, analysis):
        from mcreplicability import ConfigurationError

        fitter = MeanFitter()
        analysis.set_fitter(fitter)
        analysis.ci_bounds = (0, 1)
        with pytest.raises(ConfigurationError, match="ODR interval level"):
            analysis.estimate()
        assert fitter.calls == []

    def test_tqdm_progress_bar(self, analysis):
        pytest.importorskip("tqdm")
        from mcreplicability import TqdmReporter

        reporter = TqdmReporter(disable=True)
        result = analysis.estimate(return_results=True, progress_callback=reporter)
        assert reporter._bar is None
        assert len(result["distributions"]["bootstrap"]) == N_REPS_CHECK

    def test_printed_report(self, raw_table, capsys):
        from mcreplicability import ReplicabilityAnalysis

        a = ReplicabilityAnalysis(raw_table, study_col="study", p_col="p")
        a.set_repetitions(resampling=N_REPS_CHECK, bootstrap=N_REPS_CHECK).set_fitter(MeanFitter())
        a.estimate(progress_callback=False)
        out = capsys.readouterr().out
        assert "MONTE CARLO REPLICABILITY ESTIMATES" in out
        assert "ARP" in out

    def test_default_fitter_runs(self, suppress_output):
        from mcreplicability import ReplicabilityAnalysis
        from tests.helpers.tables import make_raw_table

        raw = make_raw_table(n_studies=60, z_mean=3.0)
        a = ReplicabilityAnalysis(raw, study_col="study", p_col="p", article_col="doi")
        a.set_repetitions(resampling=N_REPS_CHECK, bootstrap=N_REPS_CHECK)
        result = a.estimate(return_results=True)
        for metric in ("err", "edr", "arp"):
            assert 0.0 <= result["results"][metric]["estimate"] <= 1.0


class TestEstimateByGroup:
    """Test subgroup estimates and paired contrasts."""

    def test_grouped_structure(self, analysis):
        result = analysis.estimate_by_group("tier", return_results=True)
        assert result["model"]["group_key"] == "tier"
        assert result["model"]["groups"] == ["other", "top"]
        assert set(result["groups"]) == {"other", "top"}
        assert result["groups"]["top"]["model"]["n_studies"] == 10
        assert set(result["contrasts"]) == {"other - top"}
        assert result["contrasts"]["other - top"]["arp"]["n_pairs"] == N_REPS_CHECK

    def test_contrast_is_mean_paired_delta(self, analysis):
        analysis.set_repetitions(resampling=N_REPS_GROUPED, bootstrap=N_REPS_GROUPED)
        result = analysis.estimate_by_group("tier", pairs=[("top", "other")], return_results=True)
        top = result["distributions"]["resampling"]["top"].values("arp")
        other = result["distributions"]["resampling"]["other"].values("arp")
        assert result["contrasts"]["top - other"]["arp"]["estimate"] == pytest.approx(np.mean(top - other))

    def test_hierarchy(self, analysis):
        hierarchy = {
            "causal": ["experimental", "quasi_experimental"],
            "observational": ["correlational", "descriptive"],
        }
        result = analysis.estimate_by_group("design", hierarchy=hierarchy, return_results=True)
        assert result["model"]["groups"] == ["causal", "observational"]
        assert result["model"]["hierarchy"] == {k: list(v) for k, v in hierarchy.items()}

    def test_unknown_group_key(self, analysis):
        from mcreplicability import ConfigurationError

        with pytest.raises(ConfigurationError, match="not a grouping column"):
            analysis.estimate_by_group("journal")

    def test_unknown_pair_label(self, analysis):
        from mcreplicability import ConfigurationError

        with pytest.raises(ConfigurationError, match="Unknown group label"):
            analysis.estimate_by_group("tier", pairs=[("top", "middle")])

    def test_bad_pair_rejected_before_any_replicate(self, analysis):
        from mcreplicability import ConfigurationError

        fitter = MeanFitter()
        analysis.set_fitter(fitter)
        with pytest.raises(ConfigurationError, match="Unknown group label.*nope"):
            analysis.estimate_by_group("tier", pairs=[("top", "nope")])
        with pytest.raises(ConfigurationError, match=r"\(a, b\) tuples"):
            analysis.estimate_by_group("tier", pairs=[("top",)])
        assert fitter.calls == []

    def test_missing_seed_rejected_before_any_replicate(self, analysis):
        from mcreplicability import ConfigurationError

        fitter = MeanFitter()
        analysis.set_fitter(fitter)
        analysis.seed = None
        with pytest.raises(ConfigurationError, match="seed is required"):
            analysis.estimate_by_group("tier")
        assert fitter.calls == []

    def test_empty_level(self, analysis):
        from mcreplicability import EmptyGroupError

        with pytest.raises(EmptyGroupError):
            analysis.estimate_by_group("design", levels=["experimental", "meta_analysis"])

    def test_partial_pairing_warns(self, analysis):
        analysis.set_fitter(EveryThirdFails())
        with pytest.warns(UserWarning):
            result = analysis.estimate_by_group("tier", return_results=True)
        # Sequential call counting: groups fail on different replicate indices
        assert result["contrasts"]["other - top"]["arp"]["n_pairs"] < N_REPS_CHECK

    def test_strict_pairing_raises(self, analysis):
        from mcreplicability import MismatchedContrastError

        analysis.set_fitter(EveryThirdFails())
        with pytest.warns(UserWarning), pytest.raises(MismatchedContrastError):
            analysis.estimate_by_group("tier", allow_partial=False)

    def test_grouped_report_printed(self, raw_table, capsys):
        from mcreplicability import ReplicabilityAnalysis

        a = ReplicabilityAnalysis(raw_table, study_col="study", p_col="p", group_cols=["tier"])
        a.set_repetitions(resampling=N_REPS_CHECK, bootstrap=N_REPS_CHECK).set_fitter(MeanFitter())
        a.estimate_by_group("tier", progress_callback=False)
        out = capsys.readouterr().out
        assert "BY GROUP" in out
        assert "Paired contrasts" in out
