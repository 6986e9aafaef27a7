"""
SimFleet Command Line Interface
Bulk lifecycle control and CPU affinity balancing for simulation instances.

Instances come from a loopback runtime manifest (YAML). The manifest is
written back after every command so instance states carry over between
invocations; the controller itself keeps nothing.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import click

from simfleet import __version__
from simfleet.controller import FleetController
from simfleet.core.config import load_config
from simfleet.core.exceptions import ConfigError
from simfleet.core.schema import (
    AffinityMode,
    AffinityReport,
    BulkReport,
    InstanceChanged,
    Issue,
    OperatingState,
    RefreshResult,
)
from simfleet.fleet.confirmation import AutoConfirm, CallbackGate
from simfleet.runtime.loopback import LoopbackRuntime


# Configure logging
def setup_logging(verbose: bool = False, level: str = "INFO") -> None:
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )


@click.group()
@click.version_option(version=__version__, prog_name="simfleet")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--config", "-c", default=None, envvar="SIMFLEET_CONFIG",
              type=click.Path(dir_okay=False), help="Fleet config YAML")
@click.option("--manifest", "-m", default="./simfleet.yaml", envvar="SIMFLEET_MANIFEST",
              type=click.Path(dir_okay=False), help="Loopback runtime manifest YAML")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompts")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config: Optional[str],
    manifest: str,
    yes: bool,
) -> None:
    """
    SimFleet - PLC Simulation Fleet Controller

    Power, run, and stop whole fleets of simulation instances and pin
    their worker processes to CPU cores.
    """
    ctx.ensure_object(dict)

    try:
        fleet_config = load_config(config)
    except ConfigError as e:
        raise click.ClickException(str(e))

    setup_logging(verbose, fleet_config.log_level)
    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = fleet_config
    ctx.obj["manifest"] = manifest
    ctx.obj["yes"] = yes


# =============================================================================
# Session helpers
# =============================================================================


def _echo_issue(event: Issue) -> None:
    click.echo(click.style(f"✗ {event.message}", fg="red"), err=True)


def _echo_change(event: InstanceChanged) -> None:
    click.echo(click.style(f"✓ {event.message}", fg="green"))


def _confirm(message: str) -> bool:
    return click.confirm(message, default=False)


@contextmanager
def fleet_session(ctx: click.Context) -> Iterator[Dict[str, Any]]:
    """
    Open the manifest, build a controller over it, and save the manifest back.

    The registry starts empty, so the opening refresh adds every manifest
    instance. Its result is handed to the command as ``refreshed``; its
    change events are not echoed, its issues are.

    Exits with status 1 if any Issue was raised during the command.
    """
    obj = ctx.obj
    try:
        runtime = LoopbackRuntime.from_manifest(obj["manifest"])
    except ConfigError as e:
        raise click.ClickException(str(e))

    gate = AutoConfirm() if obj["yes"] else CallbackGate(_confirm)
    controller = FleetController(source=runtime, config=obj["config"], gate=gate)

    issues: List[Issue] = []
    controller.notifier.subscribe(issues.append, Issue)
    controller.notifier.subscribe(_echo_issue, Issue)
    refreshed = controller.refresh()
    controller.notifier.subscribe(_echo_change, InstanceChanged)

    yield {"controller": controller, "runtime": runtime, "issues": issues, "refreshed": refreshed}

    runtime.save_manifest(obj["manifest"])
    if issues:
        sys.exit(1)


def _print_report(report: BulkReport) -> None:
    if report.cancelled:
        click.echo(click.style("Cancelled.", fg="yellow"))
        return
    if not report.outcomes:
        click.echo("No instances qualified.")
        return
    color = "green" if not report.failed else "yellow"
    click.echo(click.style(
        f"{report.operation}: {len(report.succeeded)}/{len(report.attempted)} succeeded",
        fg=color,
    ))


def _print_affinity(report: AffinityReport) -> None:
    if report.mode == AffinityMode.SKIPPED:
        click.echo(click.style(f"Affinity unchanged: {report.reason}", fg="yellow"))
        return

    click.echo(click.style("\n═══ CPU Affinity ═══", fg="cyan", bold=True))
    click.echo(f"Worker processes: {report.process_count}")
    click.echo(f"CPU cores:        {report.core_count}")

    if report.mode == AffinityMode.UNRESTRICTED:
        click.echo(click.style("Pinning abandoned, default mask applied to every process", fg="yellow"))
        return

    for name, core in report.assignments.items():
        click.echo(f"  {name:<30} CPU {core}")


# =============================================================================
# Commands
# =============================================================================


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """
    Show instances and their operating states.
    """
    with fleet_session(ctx) as session:
        controller: FleetController = session["controller"]
        instances = controller.instances()

        if not instances:
            click.echo("No instances registered.")
            return

        click.echo(click.style("\n═══ Simulation Instances ═══", fg="cyan", bold=True))
        click.echo(f"{'Instance':<30} {'State':<8} {'PID':<8}")
        click.echo("─" * 48)

        state_color = {
            OperatingState.RUN: "green",
            OperatingState.STOP: "yellow",
            OperatingState.OFF: "white",
        }
        for instance in instances:
            state = instance.operating_state
            pid = instance.process_id if instance.process_id is not None else "-"
            click.echo(
                f"{instance.name:<30} "
                + click.style(f"{state.value.upper():<8}", fg=state_color[state])
                + f" {pid!s:<8}"
            )

        summary = controller.summary()
        click.echo(
            f"\n{summary.total} instances: {summary.powered_on} powered on, "
            f"{summary.running} running"
        )


@cli.command()
@click.argument("name")
@click.option("--state", "-s", default="off",
              type=click.Choice([s.value for s in OperatingState]),
              help="Initial operating state")
@click.option("--pid", default=None, type=int, help="PID of the backing worker process")
@click.pass_context
def add(ctx: click.Context, name: str, state: str, pid: Optional[int]) -> None:
    """
    Register a new instance in the loopback runtime.
    """
    with fleet_session(ctx) as session:
        runtime: LoopbackRuntime = session["runtime"]
        try:
            runtime.register_instance(name, state=OperatingState.parse(state), process_id=pid)
        except ValueError as e:
            raise click.ClickException(str(e))
        session["controller"].refresh()


@cli.command()
@click.argument("name")
@click.pass_context
def remove(ctx: click.Context, name: str) -> None:
    """
    Delete an instance.
    """
    with fleet_session(ctx) as session:
        session["controller"].remove_instance(name)


@cli.command()
@click.pass_context
def refresh(ctx: click.Context) -> None:
    """
    Reconcile the fleet with the runtime's instance listing.
    """
    with fleet_session(ctx) as session:
        result: RefreshResult = session["refreshed"]
        if result.failed:
            return
        if not result.changed:
            click.echo("Fleet is up to date.")
            return

        for name in result.added:
            click.echo(click.style(f"✓ Instance {name} added", fg="green"))
        for name in result.removed:
            click.echo(click.style(f"✓ Instance {name} removed", fg="green"))
        click.echo(f"{len(session['controller'].registry)} instances tracked")


@cli.command("power-on")
@click.pass_context
def power_on(ctx: click.Context) -> None:
    """
    Power on every instance.
    """
    with fleet_session(ctx) as session:
        _print_report(session["controller"].power_on_all())


@cli.command("power-off")
@click.pass_context
def power_off(ctx: click.Context) -> None:
    """
    Power off every instance.
    """
    with fleet_session(ctx) as session:
        _print_report(session["controller"].power_off_all())


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """
    Run every stopped instance.
    """
    with fleet_session(ctx) as session:
        _print_report(session["controller"].run_all())


@cli.command()
@click.pass_context
def stop(ctx: click.Context) -> None:
    """
    Stop every running instance.
    """
    with fleet_session(ctx) as session:
        _print_report(session["controller"].stop_all())


@cli.command()
@click.pass_context
def toggle(ctx: click.Context) -> None:
    """
    Stop all if anything is running, otherwise run all.
    """
    with fleet_session(ctx) as session:
        _print_report(session["controller"].toggle_run_stop())


@cli.command()
@click.pass_context
def affinity(ctx: click.Context) -> None:
    """
    Pin worker processes of running instances to CPU cores.

    Cores are assigned round-robin starting at core 1. When there are
    more worker processes than cores, every process gets the default
    mask instead.
    """
    with fleet_session(ctx) as session:
        _print_affinity(session["controller"].assign_affinity())


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
