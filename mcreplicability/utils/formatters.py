"""
Text formatting of analysis results for console output.
"""

from typing import Any, Dict, List, Optional

import numpy as np

_METRIC_LABELS = {"err": "ERR", "edr": "EDR", "arp": "ARP"}


def _fmt(value: float) -> str:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return "   NA"
    return f"{value:5.3f}"


def _format_estimate_rows(estimates: Dict[str, Dict[str, float]], odr: Optional[Dict[str, float]] = None) -> List[str]:
    lines = [f"{'Metric':<8}{'Estimate':>10}{'CI':>20}", "-" * 38]
    for metric, label in _METRIC_LABELS.items():
        est = estimates[metric]
        ci = f"[{_fmt(est['ci_lower'])}, {_fmt(est['ci_upper'])}]"
        lines.append(f"{label:<8}{_fmt(est['estimate']):>10}{ci:>20}")
    if odr is not None:
        ci = f"[{_fmt(odr['ci_lower'])}, {_fmt(odr['ci_upper'])}]"
        lines.append(f"{'ODR':<8}{_fmt(odr['mean']):>10}{ci:>20}")
    return lines


def _format_diagnostics(diag: Dict[str, Any]) -> str:
    parts = []
    for pass_name, d in diag.items():
        parts.append(f"{pass_name}: {d['n_used']}/{d['repetitions']} replicates used ({d['n_failed']} failed)")
    return "; ".join(parts)


def _format_results(analysis_type: str, result: Dict[str, Any]) -> str:
    """Format an analysis result dictionary as a console report.

    Args:
        analysis_type: ``"overall"`` or ``"grouped"``.
        result: Output of ``ReplicabilityAnalysis.estimate`` or
            ``estimate_by_group``.
    """
    lines: List[str] = []
    model = result["model"]

    if analysis_type == "overall":
        res = result["results"]
        lines.append(f"Studies: {model['n_studies']}, p-values: {model['n_observations']}")
        lines.extend(_format_estimate_rows(res, res["odr"]))
        lines.append(_format_diagnostics(res["diagnostics"]))
        return "\n".join(lines)

    lines.append(f"Grouping: {model['group_key']}")
    for label, group in result["groups"].items():
        res = group["results"]
        lines.append("")
        lines.append(f"Group: {label} (studies: {group['model']['n_studies']})")
        lines.extend(_format_estimate_rows(res, res["odr"]))
        lines.append(_format_diagnostics(res["diagnostics"]))

    if result["contrasts"]:
        lines.append("")
        lines.append("Paired contrasts")
        lines.append(f"{'Contrast':<30}{'Metric':<8}{'Delta':>8}{'CI':>20}")
        lines.append("-" * 66)
        for name, metrics in result["contrasts"].items():
            for metric, label in _METRIC_LABELS.items():
                est = metrics[metric]
                ci = f"[{_fmt(est['ci_lower'])}, {_fmt(est['ci_upper'])}]"
                lines.append(f"{name:<30}{label:<8}{_fmt(est['estimate']):>8}{ci:>20}")

    return "\n".join(lines)
