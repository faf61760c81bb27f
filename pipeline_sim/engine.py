"""Pipeline run engine: design review through canary rollout or rollback.

Every branch is a draw from an injected random source and every step waits on
an injected clock, so a run can be scripted and executed instantly in tests
or paced in real time for a live demo.
"""

import logging
import random
import string
import uuid
from typing import Callable, List, Optional, Sequence

from pipeline_sim.clock import CancelToken, VirtualClock
from pipeline_sim.events import RunRecorder
from pipeline_sim.loader import validate_config, validate_services
from pipeline_sim.models import (
    Metrics,
    PullRequest,
    RunOutcome,
    RuntimeSample,
    Service,
    SimConfig,
    Ticket,
)
from pipeline_sim.runtime import evaluate_slo, format_sample, sample_runtime

logger = logging.getLogger(__name__)

Sampler = Callable[[int, float, str, random.Random], RuntimeSample]

MAX_COVERAGE = 0.98
COVERAGE_GATE = 0.75
ROLLOUT_STEPS = (25, 50, 100)
MTTR_FAST_ONCALL = 15
MTTR_DEFAULT = 120
PR_ID_LENGTH = 7

_BASE36 = string.digits + string.ascii_lowercase


class RunCancelled(Exception):
    """Raised inside the engine when the cancel token fires."""


class PipelineEngine:
    """Drives one end-to-end simulated delivery cycle."""

    def __init__(
        self,
        config: SimConfig,
        services: Sequence[Service],
        rng: Optional[random.Random] = None,
        clock=None,
        recorder: Optional[RunRecorder] = None,
        cancel: Optional[CancelToken] = None,
        sampler: Optional[Sampler] = None,
    ):
        self.config = config
        self.services = list(services)
        self.rng = rng if rng is not None else random.Random()
        if clock is None:
            clock = recorder.clock if recorder is not None else VirtualClock()
        self.clock = clock
        self.recorder = recorder if recorder is not None else RunRecorder(self.clock)
        self.cancel = cancel if cancel is not None else CancelToken()
        self.sampler = sampler if sampler is not None else _default_sampler
        self.metrics = Metrics()
        self.pull_requests: List[PullRequest] = []
        self.runtime_samples: List[RuntimeSample] = []

    # -- public API -----------------------------------------------------------

    def reset(self) -> None:
        self.recorder.reset()
        self.metrics = Metrics()
        self.pull_requests = []
        self.runtime_samples = []

    def run(self) -> RunOutcome:
        """Execute the full stage sequence and return the outcome.

        Raises:
            InvalidConfiguration: Before anything is emitted, if the
                configuration or service catalog is invalid.
        """
        validate_config(self.config)
        validate_services(self.services)

        self.reset()
        rec = self.recorder
        rec.set_running(True)
        rec.log("Simulation started")
        rec.mark("Simulation started")
        rec.publish_metrics(self.metrics)
        logger.info(
            "Run started",
            extra={"services": len(self.selected_services), "ai_level": self.config.ai_level},
        )

        status = "completed"
        try:
            self._design_phase()
            self._sprint_planning()
            self._development()
            merged = self._staging()
            if self.config.canary:
                if not self._canary(merged):
                    status = "rolled_back"
            else:
                self._full_rollout(merged)
            self._check_cancel()
        except RunCancelled:
            rec.log("Simulation stopped by user")
            rec.set_running(False)
            logger.info("Run cancelled", extra={"progress": rec.progress})
            return self._outcome("cancelled")

        self._finish()
        logger.info("Run finished", extra={"status": status, **self.metrics.snapshot()})
        return self._outcome(status)

    @property
    def selected_services(self) -> List[Service]:
        return self.services if self.config.multi_service else self.services[:1]

    # -- stages ---------------------------------------------------------------

    def _design_phase(self) -> None:
        rec = self.recorder
        strictness = self.config.strictness
        for service in self.selected_services:
            self._check_cancel()
            rec.log(f"Drafting design doc for {service.name}")
            rec.mark(f"Design drafted: {service.name}")
            self._pause(600)

            rec.log(f"Design review for {service.name} by seniors (strictness={strictness})")
            self._pause(700 + int(800 * (1 - strictness)))
            if self.rng.random() > strictness:
                rec.log(f"Seniors requested revisions for {service.name}. Iterating.")
                self._pause(800)
                rec.mark(f"Design revised: {service.name}")

            rec.log(f"Design approved: {service.name}")
            rec.mark(f"Design approved: {service.name}")

    def _sprint_planning(self) -> None:
        self._check_cancel()
        rec = self.recorder
        rec.log(
            f"Sprint planning: {len(self.selected_services)} services, "
            f"{self.config.tickets_per_service} tickets/service, "
            f"{self.config.sprint_days}-day sprint"
        )
        rec.mark("Sprint planned")
        self._pause(700)

    def _development(self) -> None:
        rec = self.recorder
        total = len(self.selected_services) * self.config.tickets_per_service
        for service in self.selected_services:
            self._check_cancel()
            rec.log(f"Starting dev for service {service.name}")
            rec.mark(f"Dev start: {service.name}")
            for i in range(self.config.tickets_per_service):
                self._check_cancel()
                ticket = Ticket(
                    id=f"{service.id.upper()}-ST-{i + 1}",
                    service_id=service.id,
                    complexity=service.complexity + self.rng.randint(0, 2),
                )
                pr = self._develop_ticket(service, ticket)
                frac = len(self.pull_requests) / total
                self._deliver(pr, frac)

    def _develop_ticket(self, service: Service, ticket: Ticket) -> PullRequest:
        rec = self.recorder
        ai = self.config.ai_value

        rec.log(f"Ticket {ticket.id}: complexity {ticket.complexity}")
        self._pause(200 + ticket.complexity * 80)

        coverage = 0.45 + 0.07 * ticket.complexity + 0.25 * ai + self.rng.uniform(-0.03, 0.03)
        coverage = max(0.0, min(MAX_COVERAGE, coverage))
        rec.log(f"AI generated tests for {ticket.id} (coverage={coverage * 100:.1f}%)")
        self._pause(150)

        base_dev = ticket.complexity * (self.config.team_size / 6) * 60  # minutes
        ai_boost = (1 - ai) * 0.6
        rec.log(f"Implementing {ticket.id} (estimate {base_dev:.0f} min before AI assist)")
        self._pause(200 + int(base_dev * ai_boost))
        rec.log(f"Dev completed {ticket.id}; opening PR")

        pr = PullRequest(
            id=_pr_id(),
            service=service.name,
            ticket=ticket.id,
            coverage=coverage,
            created_at=self.clock.now(),
        )
        self.pull_requests.append(pr)
        rec.mark(f"PR opened: {pr.id}")
        logger.debug("PR opened", extra={"pr_id": pr.id, "ticket": ticket.id, "coverage": coverage})
        return pr

    def _deliver(self, pr: PullRequest, frac: float) -> None:
        rec = self.recorder
        ai = self.config.ai_value

        self._run_ci(pr)
        rec.advance(frac * 40)

        self._review(pr)
        rec.advance(40 + frac * 20)

        if pr.merged:
            rec.log(f"PR {pr.id} merged for {pr.ticket}")
            return

        rec.log(f"PR {pr.id} blocked; AI auto-fix attempt")
        if self.rng.random() < ai * 0.75:
            rec.log(f"AI auto-fix succeeded for {pr.id}; rerunning CI")
            pr.auto_fixed = True
            self._pause(300)
            self._run_ci(pr)
            self._review(pr)
            if pr.merged:
                rec.log(f"PR {pr.id} merged after AI fix")
            rec.advance(60 + frac * 20)
        else:
            rec.log(f"Manual intervention required for {pr.id}")

    def _run_ci(self, pr: PullRequest) -> None:
        """Lint, SAST, unit and integration stages; outcomes land on the PR."""
        rec = self.recorder
        ai = self.config.ai_value
        rng = self.rng

        rec.log(f"CI: linting {pr.id}")
        self._pause(200)
        pr.lint_ok = rng.random() > 0.12 * (1 - ai * 0.9)
        rec.log(f"Lint {pr.id}: {'OK' if pr.lint_ok else 'FAIL'}")

        rec.log(f"CI: SAST {pr.id}")
        self._pause(300)
        pr.sast_ok = rng.random() > 0.08 * (1 - ai * 0.8)
        rec.log(f"SAST {pr.id}: {'OK' if pr.sast_ok else 'VULN'}")

        rec.log(f"CI: unit tests {pr.id}")
        self._pause(300)
        pr.unit_ok = rng.random() > 0.18 * (1 - pr.coverage)
        rec.log(f"Unit {pr.id}: {'PASS' if pr.unit_ok else 'FAIL'}")

        rec.log(f"CI: integration {pr.id}")
        self._pause(400)
        pr.integ_ok = rng.random() > 0.12 * (1 - pr.coverage)
        rec.log(f"Integration {pr.id}: {'PASS' if pr.integ_ok else 'FAIL'}")

        rec.log(f"Coverage {pr.id}: {pr.coverage * 100:.1f}%")
        pr.ci_runs += 1

    def _review(self, pr: PullRequest) -> None:
        rec = self.recorder
        strictness = self.config.strictness

        rec.log(f"Code review for {pr.id} (strictness={strictness})")
        self._pause(300)
        if self.rng.random() < 0.18 * (1 - strictness):
            pr.review_comments = self.rng.randint(1, 4)
            rec.log(f"Reviewer requested {pr.review_comments} changes for {pr.id}")
            self._pause(200 * pr.review_comments)
            if self.rng.random() < 0.6 * self.config.ai_value:
                pr.mark_merged()
        elif pr.ci_green and pr.coverage >= COVERAGE_GATE:
            pr.mark_merged()

    def _staging(self) -> List[PullRequest]:
        self._check_cancel()
        rec = self.recorder
        merged = [pr for pr in self.pull_requests if pr.merged]
        rec.log(f"Preparing staging batch ({len(merged)} PRs)")
        rec.mark("Staging batching")
        self._pause(600)

        self.metrics.staging_deployments += 1
        rec.publish_metrics(self.metrics)
        result = self._sample(merged, "staging")
        rec.log(f"Staging results: {format_sample(result)}")
        rec.mark("Staging result")
        rec.advance(85)
        return merged

    def _canary(self, merged: List[PullRequest]) -> bool:
        """Canary then progressive rollout; False when the run was rolled back."""
        self._check_cancel()
        rec = self.recorder
        rec.log("Starting canary deployment")
        rec.mark("Canary start")
        self._pause(400)

        canary = self._sample(merged, "prod-canary")
        rec.log(f"Canary: {format_sample(canary)}")
        rec.advance(90)

        verdict = evaluate_slo(canary)
        if verdict.breached:
            rec.log("Canary SLO breach detected")
            rec.mark("Canary failed")
            logger.debug("Canary breach", extra={"checks": verdict.checks})
            self.metrics.failures += 1
            if self.config.auto_rollback:
                rec.log("Auto-rollback triggered")
                self.metrics.mttrs.append(
                    MTTR_FAST_ONCALL if self.config.fast_oncall else MTTR_DEFAULT
                )
                rec.publish_metrics(self.metrics)
                rec.mark("Rollback")
                return False
            rec.log("Manual rollback required (auto-rollback disabled)")
            rec.publish_metrics(self.metrics)
            return True

        rec.log("Canary healthy, proceeding to gradual rollout")
        rec.mark("Canary pass")
        for pct in ROLLOUT_STEPS:
            rec.log(f"Rolling out to {pct}%")
            self._pause(200)
            result = self._sample(merged, f"prod-{pct}")
            rec.log(f"Rollout {pct}%: {format_sample(result)}")
        self._check_cancel()
        self._record_deployment(merged)
        return True

    def _full_rollout(self, merged: List[PullRequest]) -> None:
        self._check_cancel()
        rec = self.recorder
        rec.log("Skipping canary per config, performing full prod rollout")
        result = self._sample(merged, "prod")
        rec.log(f"Prod: {format_sample(result)}")
        self._record_deployment(merged)

    def _finish(self) -> None:
        rec = self.recorder
        rec.log("Simulation finished")
        rec.mark("Simulation finished")
        rec.set_running(False)
        rec.advance(100)

    # -- helpers --------------------------------------------------------------

    def _record_deployment(self, merged: List[PullRequest]) -> None:
        now = self.clock.now()
        self.metrics.deployments += 1
        self.metrics.lead_times.extend(round(now - pr.created_at, 3) for pr in merged)
        self.recorder.publish_metrics(self.metrics)
        self.recorder.mark("Prod rollout complete")

    def _sample(self, merged: List[PullRequest], environment: str) -> RuntimeSample:
        result = self.sampler(len(merged), self.config.ai_value, environment, self.rng)
        self.runtime_samples.append(result)
        return result

    def _pause(self, ms: int) -> None:
        self._check_cancel()
        self.clock.sleep(ms)
        self._check_cancel()

    def _check_cancel(self) -> None:
        if self.cancel.cancelled:
            raise RunCancelled()

    def _outcome(self, status: str) -> RunOutcome:
        return RunOutcome(
            status=status,
            metrics=self.metrics,
            progress=self.recorder.progress,
            pull_requests=list(self.pull_requests),
            runtime_samples=list(self.runtime_samples),
            logs=self.recorder.logs,
            timeline=self.recorder.timeline,
        )


def _pr_id() -> str:
    n = uuid.uuid4().int
    chars = []
    for _ in range(PR_ID_LENGTH):
        n, r = divmod(n, 36)
        chars.append(_BASE36[r])
    return "pr_" + "".join(chars)


def _default_sampler(merged_count: int, ai_value: float, environment: str, rng) -> RuntimeSample:
    return sample_runtime(merged_count, ai_value, environment=environment, rng=rng)


def run(
    config: SimConfig,
    services: Sequence[Service],
    rng: Optional[random.Random] = None,
    clock=None,
    recorder: Optional[RunRecorder] = None,
    cancel: Optional[CancelToken] = None,
    sampler: Optional[Sampler] = None,
) -> RunOutcome:
    """Run one simulated delivery cycle; see :class:`PipelineEngine`."""
    engine = PipelineEngine(
        config,
        services,
        rng=rng,
        clock=clock,
        recorder=recorder,
        cancel=cancel,
        sampler=sampler,
    )
    return engine.run()
