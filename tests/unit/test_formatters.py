"""
Tests for result formatting.
"""

import numpy as np

from mcreplicability.utils.formatters import _fmt, _format_diagnostics, _format_results


def _metrics(estimate=0.5, lower=0.4, upper=0.6):
    return {m: {"estimate": estimate, "ci_lower": lower, "ci_upper": upper} for m in ("err", "edr", "arp")}


def _diagnostics(n_failed=0):
    d = {"repetitions": 100, "n_used": 100 - n_failed, "n_failed": n_failed, "failure_rate": n_failed / 100, "failure_reasons": {}}
    return {"resampling": d, "bootstrap": d}


def _overall(**kwargs):
    return {
        "model": {"n_studies": 20, "n_observations": 60},
        "results": {
            **_metrics(**kwargs),
            "odr": {"mean": 0.7, "ci_lower": 0.6, "ci_upper": 0.8, "n": 60},
            "diagnostics": _diagnostics(),
        },
    }


class TestFmt:
    def test_number(self):
        assert _fmt(0.12345) == "0.123"

    def test_nan(self):
        assert _fmt(np.nan).strip() == "NA"
        assert _fmt(None).strip() == "NA"


class TestFormatResults:
    """Test console reports."""

    def test_overall_report(self):
        text = _format_results("overall", _overall())
        assert "Studies: 20, p-values: 60" in text
        for label in ("ERR", "EDR", "ARP", "ODR"):
            assert label in text
        assert "[0.400, 0.600]" in text

    def test_overall_all_failed(self):
        text = _format_results("overall", _overall(estimate=np.nan, lower=np.nan, upper=np.nan))
        assert "NA" in text

    def test_diagnostics_line(self):
        line = _format_diagnostics(_diagnostics(n_failed=3))
        assert "resampling: 97/100 replicates used (3 failed)" in line

    def test_grouped_report(self):
        group = _overall()
        result = {
            "model": {"group_key": "tier"},
            "groups": {"top": group, "other": group},
            "contrasts": {"top - other": {m: {**v, "n_pairs": 100} for m, v in _metrics(0.1, -0.05, 0.2).items()}},
        }
        text = _format_results("grouped", result)
        assert "Grouping: tier" in text
        assert "Group: top (studies: 20)" in text
        assert "Paired contrasts" in text
        assert "top - other" in text
        assert "[-0.050, 0.200]" in text

    def test_grouped_without_contrasts(self):
        result = {"model": {"group_key": "tier"}, "groups": {"top": _overall()}, "contrasts": {}}
        assert "Paired contrasts" not in _format_results("grouped", result)
