"""Tests for run history logging."""

import json
import os
import tempfile

from conftest import FixedRandom
from pipeline_sim.engine import run
from pipeline_sim.evidence import append_event, create_event, read_events
from pipeline_sim.models import EvidenceEvent


def _event(single_config, auth_service, scenario="defaults"):
    outcome = run(single_config, [auth_service], rng=FixedRandom(0.99))
    return create_event(outcome, scenario=scenario, services=["auth"])


class TestCreateEvent:
    def test_basic_event(self, single_config, auth_service):
        event = _event(single_config, auth_service, scenario="fixtures/single-service.yaml")
        assert event.scenario == "fixtures/single-service.yaml"
        assert event.services == ["auth"]
        assert event.status == "completed"
        assert event.deployments == 1
        assert event.failures == 0
        assert event.merged_prs == 1
        assert event.total_prs == 1
        assert "T" in event.ts  # ISO 8601


class TestAppendAndRead:
    def test_append_creates_file(self, single_config, auth_service):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_path = os.path.join(tmpdir, "runs.jsonl")
            assert not os.path.exists(log_path)

            append_event(_event(single_config, auth_service), log_path)

            with open(log_path, "r") as f:
                lines = f.readlines()
            assert len(lines) == 1
            parsed = json.loads(lines[0])
            assert parsed["status"] == "completed"
            assert parsed["services"] == ["auth"]

    def test_append_does_not_overwrite(self, single_config, auth_service):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_path = os.path.join(tmpdir, "runs.jsonl")
            append_event(_event(single_config, auth_service, "a.yaml"), log_path)
            append_event(_event(single_config, auth_service, "b.yaml"), log_path)

            events = read_events(log_path)
            assert [e.scenario for e in events] == ["a.yaml", "b.yaml"]

    def test_read_nonexistent_returns_empty(self):
        assert read_events("/tmp/nonexistent_pipeline_runs.jsonl") == []

    def test_creates_parent_directories(self, single_config, auth_service):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_path = os.path.join(tmpdir, "nested", "dir", "runs.jsonl")
            append_event(_event(single_config, auth_service), log_path)
            assert os.path.isfile(log_path)

    def test_malformed_lines_skipped(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_path = os.path.join(tmpdir, "runs.jsonl")
            with open(log_path, "w") as f:
                f.write('{"ts":"2026-01-01T00:00:00Z","scenario":"a.yaml","services":["auth"],"status":"completed","deployments":1,"failures":0,"merged_prs":1,"total_prs":1}\n')
                f.write("this is not json\n")
                f.write("[1, 2]\n")
                f.write('{"ts":"2026-01-02T00:00:00Z","scenario":"b.yaml","status":"rolled_back","failures":1}\n')

            events = read_events(log_path)
            assert len(events) == 2
            assert events[0].scenario == "a.yaml"
            assert events[1].status == "rolled_back"
            assert events[1].deployments == 0

    def test_round_trip_keeps_every_field(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_path = os.path.join(tmpdir, "runs.jsonl")
            event = EvidenceEvent(
                ts="2026-03-01T12:00:00Z",
                scenario="fixtures/multi-service.json",
                services=["payments", "auth"],
                status="rolled_back",
                deployments=0,
                failures=1,
                merged_prs=7,
                total_prs=12,
            )
            append_event(event, log_path)
            assert read_events(log_path) == [event]

    def test_unknown_keys_ignored(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_path = os.path.join(tmpdir, "runs.jsonl")
            with open(log_path, "w") as f:
                f.write('{"ts":"2026-01-03T00:00:00Z","scenario":"c.yaml","deployments":2,"operator":"ci-bot"}\n')

            events = read_events(log_path)
            assert len(events) == 1
            assert events[0].scenario == "c.yaml"
            assert events[0].deployments == 2
            assert events[0].services == []
