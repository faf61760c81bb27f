"""Sample runtime characteristics and evaluate them against the canary SLO."""

import math
import random
from dataclasses import dataclass, field
from typing import List, Optional

from pipeline_sim.models import RuntimeSample


MIN_P95_MS = 80
MAX_ERROR_RATE = 0.20


@dataclass(frozen=True)
class SLO:
    p95_ms: float = 300
    error_rate: float = 0.03


CANARY_SLO = SLO()


@dataclass
class SloResult:
    breached: bool
    narrative: str
    checks: List[dict] = field(default_factory=list)  # each: {metric, result, detail}


def sample_runtime(
    merged_count: int,
    ai_value: float,
    environment: str = "prod",
    rng: Optional[random.Random] = None,
) -> RuntimeSample:
    """Draw p95 latency and error rate for a deployment of ``merged_count`` PRs.

    Larger batches push both numbers up; higher AI assistance narrows the
    random spread.

    Args:
        merged_count: Number of merged pull requests in the batch.
        ai_value: Numeric AI assistance level in [0, 1].
        environment: Label of the probed environment (``staging``, ``prod-25``...).
        rng: Random source; the module-level generator when omitted.

    Returns:
        A RuntimeSample with p95 >= 80 ms and error rate in [0, 0.20].
    """
    if rng is None:
        rng = random
    spread = 1 - ai_value

    base_latency = 160 + merged_count * 2
    # half-up, so 160.5 ms reports as 161
    p95 = math.floor(max(MIN_P95_MS, base_latency + rng.uniform(-40, 140) * spread) + 0.5)

    error_rate = 0.005 + merged_count * 0.002 + rng.uniform(0, 0.03) * spread
    error_rate = max(0.0, min(MAX_ERROR_RATE, error_rate))

    return RuntimeSample(environment=environment, p95=int(p95), error_rate=error_rate)


def evaluate_slo(sample: RuntimeSample, slo: SLO = CANARY_SLO) -> SloResult:
    """Check a runtime sample against SLO thresholds.

    A value strictly above its threshold is a breach.
    """
    checks = []

    latency_ok = sample.p95 <= slo.p95_ms
    checks.append({
        "metric": "latency_p95",
        "result": "pass" if latency_ok else "fail",
        "detail": f"p95 latency: {sample.p95} ms (threshold: {slo.p95_ms:g} ms)",
    })

    error_ok = sample.error_rate <= slo.error_rate
    checks.append({
        "metric": "error_rate",
        "result": "pass" if error_ok else "fail",
        "detail": (
            f"error rate: {sample.error_rate * 100:.2f}% "
            f"(threshold: {slo.error_rate * 100:.1f}%)"
        ),
    })

    breached = not (latency_ok and error_ok)
    return SloResult(
        breached=breached,
        narrative=_build_narrative(sample, checks, breached),
        checks=checks,
    )


def format_sample(sample: RuntimeSample) -> str:
    return f"p95={sample.p95}ms err={sample.error_rate * 100:.2f}%"


def _build_narrative(sample: RuntimeSample, checks: List[dict], breached: bool) -> str:
    lines = []
    if not breached:
        lines.append(f"All SLO checks passed for {sample.environment}.")
    else:
        failed = [c for c in checks if c["result"] == "fail"]
        lines.append(f"SLO VIOLATION in {sample.environment}: {len(failed)} check(s) failed.")
        for c in failed:
            lines.append(f"  - {c['detail']}")
    return "\n".join(lines)
