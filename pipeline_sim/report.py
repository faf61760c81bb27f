"""Summaries and serialization for finished simulation runs."""

import json
import math
from dataclasses import asdict
from typing import Dict, List, Optional

from pipeline_sim.models import RunOutcome


def calculate_percentile(sorted_values: List[float], p: float) -> Optional[float]:
    """Calculate a percentile using linear interpolation.

    The input is expected to be sorted ascending. Empty input returns ``None``.

    Raises:
        ValueError: If ``p`` is outside ``[0, 100]``.
    """
    if not 0 <= p <= 100:
        raise ValueError("Percentile 'p' must be in the range [0, 100].")

    if not sorted_values:
        return None

    position = (len(sorted_values) - 1) * (p / 100.0)
    lower_index = math.floor(position)
    upper_index = math.ceil(position)

    if lower_index == upper_index:
        return sorted_values[int(position)]

    lower_value = sorted_values[lower_index]
    upper_value = sorted_values[upper_index]
    return lower_value + (upper_value - lower_value) * (position - lower_index)


def summarize(outcome: RunOutcome) -> Dict[str, Optional[float]]:
    """Headline numbers for a run: counts, lead-time percentiles, mean MTTR."""
    metrics = outcome.metrics
    lead_times = sorted(metrics.lead_times)
    mttrs = metrics.mttrs
    return {
        "status": outcome.status,
        "total_prs": len(outcome.pull_requests),
        "merged_prs": len(outcome.merged_prs),
        "deployments": metrics.deployments,
        "staging_deployments": metrics.staging_deployments,
        "failures": metrics.failures,
        "lead_time_p50": calculate_percentile(lead_times, 50),
        "lead_time_p90": calculate_percentile(lead_times, 90),
        "mttr_mean": sum(mttrs) / len(mttrs) if mttrs else None,
    }


def build_narrative(outcome: RunOutcome) -> str:
    summary = summarize(outcome)
    lines = []
    if outcome.status == "completed":
        lines.append("Run completed.")
    elif outcome.status == "rolled_back":
        lines.append("Run ended early: canary SLO breach triggered an automatic rollback.")
    else:
        lines.append(f"Run stopped at {outcome.progress}% progress.")

    lines.append(f"Pull requests: {summary['merged_prs']}/{summary['total_prs']} merged")
    lines.append(
        f"Deployments: {summary['deployments']} prod, "
        f"{summary['staging_deployments']} staging; failures: {summary['failures']}"
    )
    if summary["lead_time_p50"] is not None:
        lines.append(
            f"Lead time: P50 {summary['lead_time_p50']:.1f}s, "
            f"P90 {summary['lead_time_p90']:.1f}s"
        )
    if summary["mttr_mean"] is not None:
        lines.append(f"MTTR: {summary['mttr_mean']:.0f} min")

    for sample in outcome.runtime_samples:
        lines.append(
            f"  - {sample.environment}: p95={sample.p95}ms "
            f"err={sample.error_rate * 100:.2f}%"
        )
    return "\n".join(lines)


def outcome_to_dict(outcome: RunOutcome) -> dict:
    return {
        "status": outcome.status,
        "progress": outcome.progress,
        "metrics": outcome.metrics.snapshot(),
        "summary": summarize(outcome),
        "pull_requests": [asdict(pr) for pr in outcome.pull_requests],
        "runtime_samples": [asdict(s) for s in outcome.runtime_samples],
        "timeline": [asdict(t) for t in outcome.timeline],
        "logs": [asdict(entry) for entry in outcome.logs],
    }


def outcome_to_json(outcome: RunOutcome) -> str:
    return json.dumps(outcome_to_dict(outcome), indent=2)
