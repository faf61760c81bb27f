"""Shared fixtures: scripted random sources for forcing simulation outcomes."""

import os

import pytest

from pipeline_sim.models import Service, SimConfig


FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "..", "fixtures")


class FixedRandom:
    """Every draw sits at the same relative position ``value`` in its range."""

    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value

    def uniform(self, a, b):
        return a + (b - a) * self.value

    def randint(self, a, b):
        return a + min(b - a, int(self.value * (b - a + 1)))


class ScriptedRandom:
    """Pops ``random()`` results from a script, then falls back to ``fallback``.

    ``uniform`` draws the midpoint of its range and ``randint`` its lower bound,
    so only the probability checks consume the script.
    """

    def __init__(self, values, fallback=0.5):
        self.values = list(values)
        self.fallback = fallback

    def random(self):
        if self.values:
            return self.values.pop(0)
        return self.fallback

    def uniform(self, a, b):
        return (a + b) / 2

    def randint(self, a, b):
        return a


@pytest.fixture
def auth_service():
    return Service(id="auth", name="Auth", complexity=3)


@pytest.fixture
def single_config():
    return SimConfig(
        team_size=8,
        sprint_days=10,
        tickets_per_service=1,
        ai_level="high",
        strict_design=False,
        canary=False,
        auto_rollback=True,
        multi_service=False,
    )
