import yaml
from dataclasses import asdict
from typing import Dict, Sequence

from pipeline_sim.models import DEFAULT_CONFIG, DEFAULT_SERVICES, Service, SimConfig


def scenario_document(
    config: SimConfig = DEFAULT_CONFIG,
    services: Sequence[Service] = DEFAULT_SERVICES,
) -> Dict:
    """Scenario file contents for ``config`` and ``services``, ready to dump."""
    return {
        "config": asdict(config),
        "services": [asdict(s) for s in services],
    }


def write_yaml_config(document: Dict, out_path: str):
    with open(out_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(document, f, sort_keys=False)
