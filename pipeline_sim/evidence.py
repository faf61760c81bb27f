"""Append-only run history in JSONL format."""

import json
import os
from dataclasses import asdict, fields
from datetime import datetime, timezone
from typing import List

from pipeline_sim.models import EvidenceEvent, RunOutcome


def create_event(outcome: RunOutcome, scenario: str, services: List[str]) -> EvidenceEvent:
    """Build an EvidenceEvent for a finished run with the current UTC timestamp.

    Args:
        outcome: The run to record.
        scenario: Scenario file path, or ``"defaults"``.
        services: Ids of the services that took part in the run.

    Returns:
        A populated EvidenceEvent.
    """
    ts = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return EvidenceEvent(
        ts=ts,
        scenario=scenario,
        services=services,
        status=outcome.status,
        deployments=outcome.metrics.deployments,
        failures=outcome.metrics.failures,
        merged_prs=len(outcome.merged_prs),
        total_prs=len(outcome.pull_requests),
    )


def append_event(event: EvidenceEvent, log_path: str) -> None:
    """Append a single evidence event as a JSONL line.

    Creates the file (and parent directories) if it does not exist.
    Never overwrites existing entries.
    """
    parent = os.path.dirname(log_path)
    if parent and not os.path.isdir(parent):
        os.makedirs(parent, exist_ok=True)

    with open(log_path, "a") as f:
        f.write(json.dumps(asdict(event)) + "\n")


def read_events(log_path: str) -> List[EvidenceEvent]:
    """Read all events from a JSONL evidence log.

    Malformed lines are skipped. Unknown keys are ignored and missing ones
    take the EvidenceEvent defaults.
    """
    if not os.path.isfile(log_path):
        return []

    known = {f.name for f in fields(EvidenceEvent)}
    events = []
    with open(log_path, "r") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                raw = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(raw, dict):
                continue
            events.append(EvidenceEvent(**{k: v for k, v in raw.items() if k in known}))
    return events
