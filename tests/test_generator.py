"""Tests for the default scenario writer."""

import os
import tempfile

import yaml

from pipeline_sim.generator import scenario_document, write_yaml_config
from pipeline_sim.loader import load_scenario
from pipeline_sim.models import DEFAULT_CONFIG, DEFAULT_SERVICES


class TestScenarioDocument:
    def test_contains_every_setting(self):
        doc = scenario_document()
        assert doc["config"]["ai_level"] == "med"
        assert doc["config"]["tickets_per_service"] == 6
        assert "fast_oncall" in doc["config"]
        assert [s["id"] for s in doc["services"]] == ["payments", "auth", "notify"]

    def test_written_file_loads_back_as_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "scenario.yaml")
            write_yaml_config(scenario_document(), path)

            with open(path) as f:
                raw = yaml.safe_load(f)
            assert list(raw) == ["config", "services"]

            config, services = load_scenario(path)
            assert config == DEFAULT_CONFIG
            assert services == DEFAULT_SERVICES
