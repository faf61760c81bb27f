"""Data models for simulation configuration, pull requests, metrics, and run events."""

from dataclasses import dataclass, field
from typing import List, Optional


AI_LEVELS = {"low": 0.35, "med": 0.65, "high": 0.92}

LOG_CAPACITY = 300


@dataclass(frozen=True)
class SimConfig:
    team_size: int
    sprint_days: int
    tickets_per_service: int
    ai_level: str  # "low", "med", "high"
    strict_design: bool
    canary: bool
    auto_rollback: bool
    multi_service: bool
    fast_oncall: bool = False

    @property
    def ai_value(self) -> float:
        return AI_LEVELS[self.ai_level]

    @property
    def strictness(self) -> float:
        return 0.85 if self.strict_design else 0.45


@dataclass(frozen=True)
class Service:
    id: str
    name: str
    complexity: int


@dataclass
class Ticket:
    id: str  # e.g. "AUTH-ST-1"
    service_id: str
    complexity: int


@dataclass
class PullRequest:
    id: str
    service: str
    ticket: str
    coverage: float
    created_at: float
    lint_ok: Optional[bool] = None
    sast_ok: Optional[bool] = None
    unit_ok: Optional[bool] = None
    integ_ok: Optional[bool] = None
    merged: bool = False
    review_comments: int = 0
    ci_runs: int = 0
    auto_fixed: bool = False

    @property
    def ci_green(self) -> bool:
        return bool(self.lint_ok and self.sast_ok and self.unit_ok and self.integ_ok)

    def mark_merged(self) -> None:
        # merges are final; nothing in a run clears this flag
        self.merged = True


@dataclass
class Metrics:
    deployments: int = 0
    failures: int = 0
    lead_times: List[float] = field(default_factory=list)
    mttrs: List[float] = field(default_factory=list)
    staging_deployments: int = 0

    def snapshot(self) -> dict:
        return {
            "deployments": self.deployments,
            "failures": self.failures,
            "lead_times": list(self.lead_times),
            "mttrs": list(self.mttrs),
            "staging_deployments": self.staging_deployments,
        }


@dataclass(frozen=True)
class LogEntry:
    ts: float
    text: str


@dataclass(frozen=True)
class TimelineEvent:
    ts: float
    label: str


@dataclass(frozen=True)
class RuntimeSample:
    environment: str
    p95: int  # milliseconds
    error_rate: float


@dataclass
class RunOutcome:
    status: str  # "completed", "rolled_back", "cancelled"
    metrics: Metrics
    progress: int
    pull_requests: List[PullRequest] = field(default_factory=list)
    runtime_samples: List[RuntimeSample] = field(default_factory=list)
    logs: List[LogEntry] = field(default_factory=list)
    timeline: List[TimelineEvent] = field(default_factory=list)

    @property
    def merged_prs(self) -> List[PullRequest]:
        return [pr for pr in self.pull_requests if pr.merged]

    def samples_for(self, environment: str) -> List[RuntimeSample]:
        return [s for s in self.runtime_samples if s.environment == environment]


@dataclass
class EvidenceEvent:
    ts: str = ""
    scenario: str = ""
    services: List[str] = field(default_factory=list)
    status: str = "completed"
    deployments: int = 0
    failures: int = 0
    merged_prs: int = 0
    total_prs: int = 0


DEFAULT_SERVICES = [
    Service(id="payments", name="Payments", complexity=4),
    Service(id="auth", name="Auth", complexity=3),
    Service(id="notify", name="Notifications", complexity=2),
]

DEFAULT_CONFIG = SimConfig(
    team_size=8,
    sprint_days=10,
    tickets_per_service=6,
    ai_level="med",
    strict_design=True,
    canary=True,
    auto_rollback=True,
    multi_service=True,
)
