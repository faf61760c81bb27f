"""CLI entry point for the delivery pipeline simulator."""

import logging
import os
import sys

import click

from pipeline_sim.clock import VirtualClock, WallClock
from pipeline_sim.engine import PipelineEngine
from pipeline_sim.evidence import append_event, create_event, read_events
from pipeline_sim.generator import scenario_document, write_yaml_config
from pipeline_sim.loader import InvalidConfiguration, apply_overrides, load_scenario
from pipeline_sim.models import AI_LEVELS, DEFAULT_CONFIG, DEFAULT_SERVICES
from pipeline_sim.report import build_narrative, outcome_to_json


@click.group()
def main():
    """Delivery Pipeline Simulator -- design review to canary rollout, one random run at a time."""


@main.command()
@click.option(
    "--scenario",
    default=None,
    type=click.Path(exists=True),
    help="Path to a scenario file (YAML or JSON). Built-in defaults if omitted.",
)
@click.option("--ai-level", type=click.Choice(sorted(AI_LEVELS)), default=None, help="Override AI assistance level.")
@click.option("--tickets", "tickets_per_service", type=int, default=None, help="Override tickets per service.")
@click.option("--team-size", type=int, default=None, help="Override team size.")
@click.option("--canary/--no-canary", default=None, help="Enable or disable the canary stage.")
@click.option("--auto-rollback/--no-auto-rollback", default=None, help="Roll back automatically on a canary breach.")
@click.option("--strict-design/--relaxed-design", default=None, help="Design review strictness.")
@click.option("--multi-service/--single-service", default=None, help="Simulate every service or only the first.")
@click.option("--fast-oncall/--slow-oncall", default=None, help="Shorter recovery time after a rollback.")
@click.option("--realtime", is_flag=True, help="Pace the run with real delays instead of simulated time.")
@click.option("--speed", type=float, default=1.0, show_default=True, help="Real-time speed multiplier.")
@click.option("--quiet", is_flag=True, help="Only print the summary, not the live log.")
@click.option(
    "--out",
    default=None,
    type=click.Path(),
    help="Optional output path for the run outcome (JSON).",
)
@click.option(
    "--log",
    "log_path",
    default=None,
    type=click.Path(),
    help="Optional path to the run history (JSONL). Appends an entry when provided.",
)
@click.option("--verbose", is_flag=True, help="Enable debug logging.")
def run(scenario, ai_level, tickets_per_service, team_size, canary, auto_rollback,
        strict_design, multi_service, fast_oncall, realtime, speed, quiet, out, log_path, verbose):
    """Run one simulated delivery cycle."""
    _configure_logging(verbose)

    try:
        if scenario:
            config, services = load_scenario(scenario)
        else:
            config, services = DEFAULT_CONFIG, list(DEFAULT_SERVICES)
        config = apply_overrides(
            config,
            ai_level=ai_level,
            tickets_per_service=tickets_per_service,
            team_size=team_size,
            canary=canary,
            auto_rollback=auto_rollback,
            strict_design=strict_design,
            multi_service=multi_service,
            fast_oncall=fast_oncall,
        )
    except InvalidConfiguration as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if realtime and speed <= 0:
        click.echo("Error: --speed must be greater than 0", err=True)
        sys.exit(1)
    clock = WallClock(speed=speed) if realtime else VirtualClock()
    engine = PipelineEngine(config, services, clock=clock)

    if not quiet:
        def echo_log(kind, payload):
            if kind == "log":
                click.echo(f"[{payload.ts:8.1f}s] {payload.text}")

        engine.recorder.subscribe(echo_log)

    try:
        outcome = engine.run()
    except KeyboardInterrupt:
        click.echo("\nInterrupted.", err=True)
        sys.exit(130)

    click.echo("\n--- Run Summary ---")
    click.echo(f"Status: {outcome.status.upper()}")
    click.echo(build_narrative(outcome))

    if out:
        with open(out, "w") as f:
            f.write(outcome_to_json(outcome) + "\n")
        click.echo(f"Outcome written to {out}")

    if log_path:
        event = create_event(
            outcome,
            scenario=scenario or "defaults",
            services=[s.id for s in engine.selected_services],
        )
        append_event(event, log_path)
        click.echo(f"Run logged to {log_path}")


@main.command()
@click.option(
    "--scenario",
    required=True,
    type=click.Path(exists=True),
    help="Path to the scenario file to check.",
)
def validate(scenario):
    """Validate a scenario file without running it."""
    try:
        config, services = load_scenario(scenario)
    except InvalidConfiguration as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo(
        f"OK: {len(services)} service(s), {config.tickets_per_service} tickets/service, "
        f"ai_level={config.ai_level}"
    )


@main.command()
@click.option(
    "--out",
    required=True,
    type=click.Path(),
    help="Where to write the default scenario (YAML).",
)
@click.option("--force", is_flag=True, help="Overwrite an existing file.")
def init(out, force):
    """Write the default scenario to a YAML file."""
    if os.path.exists(out) and not force:
        click.echo(f"Error: {out} already exists (use --force to overwrite)", err=True)
        sys.exit(1)
    write_yaml_config(scenario_document(), out)
    click.echo(f"Wrote scenario to {out}")


@main.command()
@click.option(
    "--log",
    "log_path",
    required=True,
    type=click.Path(),
    help="Path to the run history (JSONL).",
)
def history(log_path):
    """List recorded runs."""
    events = read_events(log_path)
    if not events:
        click.echo("No runs recorded.")
        return
    for e in events:
        click.echo(
            f"{e.ts}  {e.status:<11}  deployments={e.deployments} failures={e.failures} "
            f"merged={e.merged_prs}/{e.total_prs}  [{', '.join(e.services)}] {e.scenario}"
        )


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


if __name__ == "__main__":
    main()
