"""Tests for run summaries and outcome serialization."""

import json

import pytest

from pipeline_sim.models import Metrics, PullRequest, RunOutcome, RuntimeSample
from pipeline_sim.report import (
    build_narrative,
    calculate_percentile,
    outcome_to_dict,
    outcome_to_json,
    summarize,
)


def _outcome(status="completed", metrics=None):
    prs = [
        PullRequest(id="pr_a", service="Auth", ticket="AUTH-ST-1", coverage=0.9, created_at=1.0, merged=True),
        PullRequest(id="pr_b", service="Auth", ticket="AUTH-ST-2", coverage=0.6, created_at=2.0),
    ]
    return RunOutcome(
        status=status,
        metrics=metrics or Metrics(deployments=1, staging_deployments=1, lead_times=[30.0, 10.0, 20.0]),
        progress=100,
        pull_requests=prs,
        runtime_samples=[RuntimeSample(environment="prod", p95=190, error_rate=0.011)],
    )


class TestPercentile:
    def test_empty_returns_none(self):
        assert calculate_percentile([], 50) is None

    def test_interpolates(self):
        values = [10.0, 20.0, 30.0, 40.0]
        assert calculate_percentile(values, 50) == pytest.approx(25.0)
        assert calculate_percentile(values, 90) == pytest.approx(37.0)

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            calculate_percentile([1.0], 101)


class TestSummary:
    def test_counts_and_lead_times(self):
        summary = summarize(_outcome())
        assert summary["total_prs"] == 2
        assert summary["merged_prs"] == 1
        assert summary["deployments"] == 1
        assert summary["lead_time_p50"] == pytest.approx(20.0)
        assert summary["mttr_mean"] is None

    def test_mttr_mean(self):
        summary = summarize(_outcome(metrics=Metrics(failures=2, mttrs=[120, 15])))
        assert summary["mttr_mean"] == pytest.approx(67.5)
        assert summary["lead_time_p50"] is None


class TestNarrative:
    def test_completed(self):
        text = build_narrative(_outcome())
        assert "Run completed." in text
        assert "1/2 merged" in text
        assert "prod: p95=190ms err=1.10%" in text

    def test_rolled_back(self):
        text = build_narrative(_outcome("rolled_back", Metrics(failures=1, mttrs=[120])))
        assert "rollback" in text
        assert "MTTR: 120 min" in text

    def test_cancelled(self):
        outcome = _outcome("cancelled")
        outcome.progress = 42
        assert "stopped at 42%" in build_narrative(outcome)


class TestSerialization:
    def test_outcome_to_json(self):
        parsed = json.loads(outcome_to_json(_outcome()))
        assert parsed["status"] == "completed"
        assert parsed["metrics"]["deployments"] == 1
        assert parsed["pull_requests"][0]["id"] == "pr_a"
        assert parsed["runtime_samples"][0]["p95"] == 190

    def test_outcome_to_dict_has_summary(self):
        d = outcome_to_dict(_outcome())
        assert d["summary"]["merged_prs"] == 1
