"""Load and validate simulation scenarios (YAML or JSON)."""

import json
import os
from dataclasses import fields, replace
from typing import List, Sequence, Tuple

import yaml

from pipeline_sim.models import AI_LEVELS, DEFAULT_CONFIG, DEFAULT_SERVICES, Service, SimConfig


_INT_FIELDS = ("team_size", "sprint_days", "tickets_per_service")
_BOOL_FIELDS = ("strict_design", "canary", "auto_rollback", "multi_service")
_OPTIONAL_BOOL_FIELDS = ("fast_oncall",)


class InvalidConfiguration(ValueError):
    """Raised when a configuration or service catalog fails validation.

    ``field`` names the first offending field; the message lists every
    problem that was found.
    """

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class ScenarioLoadError(InvalidConfiguration):
    """Raised when a scenario file is missing, unreadable, or not parseable."""


def load_scenario(path: str) -> Tuple[SimConfig, List[Service]]:
    """Load a configuration and service catalog from a scenario file.

    The file holds a ``config`` mapping and a ``services`` list. Either
    section may be omitted, in which case the defaults are used.

    Args:
        path: Path to a ``.yaml``, ``.yml`` or ``.json`` scenario file.

    Returns:
        A tuple of (SimConfig, services).

    Raises:
        ScenarioLoadError: If the file is missing or cannot be parsed.
        InvalidConfiguration: If the contents fail validation.
    """
    if not os.path.isfile(path):
        raise ScenarioLoadError(path, f"scenario file not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    try:
        with open(path, "r") as f:
            if ext in (".yaml", ".yml"):
                raw = yaml.safe_load(f)
            elif ext == ".json":
                raw = json.load(f)
            else:
                raise ScenarioLoadError(
                    path,
                    f"unsupported file extension: {ext} (expected .yaml, .yml, or .json)",
                )
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ScenarioLoadError(path, f"failed to parse {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ScenarioLoadError(path, "scenario must be a mapping/object at the top level")

    config_raw = raw.get("config")
    if config_raw is None:
        config = DEFAULT_CONFIG
    else:
        config = build_config(config_raw)

    services_raw = raw.get("services")
    if services_raw is None:
        services = list(DEFAULT_SERVICES)
    else:
        services = build_services(services_raw)

    return config, services


def build_config(raw: dict) -> SimConfig:
    """Construct and validate a SimConfig from a raw mapping."""
    if not isinstance(raw, dict):
        raise InvalidConfiguration("config", "'config' must be a mapping")

    errors: List[Tuple[str, str]] = []
    known = {f.name for f in fields(SimConfig)}
    for key in raw:
        if key not in known:
            errors.append((f"config.{key}", f"'config.{key}' is not a known setting"))

    for name in _INT_FIELDS + ("ai_level",) + _BOOL_FIELDS:
        if name not in raw:
            errors.append((f"config.{name}", f"'config.{name}' is required"))

    _raise_if(errors)

    kwargs = {name: raw[name] for name in known if name in raw}
    config = SimConfig(**kwargs)
    validate_config(config)
    return config


def build_services(raw: list) -> List[Service]:
    """Construct and validate a service catalog from a raw list."""
    if not isinstance(raw, list):
        raise InvalidConfiguration("services", "'services' must be a list")

    errors: List[Tuple[str, str]] = []
    services = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            errors.append((f"services[{i}]", f"services[{i}] must be a mapping"))
            continue
        service_id = entry.get("id")
        if not service_id or not isinstance(service_id, str):
            errors.append((f"services[{i}].id", f"services[{i}].id is required"))
            continue
        name = entry.get("name") or service_id.title()
        services.append(Service(id=service_id, name=str(name), complexity=entry.get("complexity")))

    _raise_if(errors)
    validate_services(services)
    return services


def validate_config(config: SimConfig) -> None:
    """Check every field of an already-built SimConfig.

    Raises:
        InvalidConfiguration: Naming the first offending field.
    """
    errors: List[Tuple[str, str]] = []

    for name in _INT_FIELDS:
        value = getattr(config, name)
        if isinstance(value, bool) or not isinstance(value, int):
            errors.append((f"config.{name}", f"'config.{name}' must be an integer, got {value!r}"))
        elif value <= 0:
            errors.append((f"config.{name}", f"'config.{name}' must be greater than 0"))

    if not isinstance(config.ai_level, str) or config.ai_level not in AI_LEVELS:
        errors.append((
            "config.ai_level",
            f"'config.ai_level' must be one of {', '.join(AI_LEVELS)}, got {config.ai_level!r}",
        ))

    for name in _BOOL_FIELDS + _OPTIONAL_BOOL_FIELDS:
        value = getattr(config, name)
        if not isinstance(value, bool):
            errors.append((f"config.{name}", f"'config.{name}' must be true or false, got {value!r}"))

    _raise_if(errors)


def validate_services(services: Sequence[Service]) -> None:
    """Check a service catalog: non-empty, unique ids, non-negative complexity."""
    if not services:
        raise InvalidConfiguration("services", "'services' must contain at least one service")

    errors: List[Tuple[str, str]] = []
    seen = set()
    for i, service in enumerate(services):
        if not service.id or not isinstance(service.id, str):
            errors.append((f"services[{i}].id", f"services[{i}].id must be a non-empty string"))
        elif service.id in seen:
            errors.append((f"services[{i}].id", f"duplicate service id: {service.id}"))
        else:
            seen.add(service.id)
        complexity = service.complexity
        if isinstance(complexity, bool) or not isinstance(complexity, int):
            errors.append((
                f"services[{i}].complexity",
                f"services[{i}].complexity must be an integer, got {complexity!r}",
            ))
        elif complexity < 0:
            errors.append((
                f"services[{i}].complexity",
                f"services[{i}].complexity must not be negative",
            ))

    _raise_if(errors)


def apply_overrides(config: SimConfig, **overrides) -> SimConfig:
    """Return a validated copy of ``config`` with non-None overrides applied."""
    changes = {k: v for k, v in overrides.items() if v is not None}
    if not changes:
        return config
    updated = replace(config, **changes)
    validate_config(updated)
    return updated


def _raise_if(errors: List[Tuple[str, str]]) -> None:
    if not errors:
        return
    raise InvalidConfiguration(
        errors[0][0],
        "configuration validation failed:\n  - " + "\n  - ".join(msg for _, msg in errors),
    )
