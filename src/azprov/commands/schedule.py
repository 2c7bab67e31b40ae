"""Scheduled VM start commands.

This module provides commands for enabling, disabling, showing and running
daily VM start schedules. Schedules are stored in VM tags; ``run`` is meant to
be invoked periodically from cron or Task Scheduler.
"""

from __future__ import annotations

import sys

import click

from azprov.commands.cli_helpers import fail, load_provider
from azprov.exceptions import ProvisionError
from azprov.start_schedule import StartScheduleManager

__all__ = ["schedule_start"]


@click.group(name="schedule-start")
def schedule_start() -> None:
    """Manage scheduled VM starts.

    \b
    EXAMPLES:
        # Start vm1 at 07:30 UTC on weekdays
        $ azprov schedule-start enable --service-name contoso-svc --vm-name vm1 \\
            --at 07:30 --days weekdays

        # Start every VM that is due (run from cron)
        $ azprov schedule-start run --service-name contoso-svc

        # Remove the schedule
        $ azprov schedule-start disable --service-name contoso-svc --vm-name vm1
    """
    pass


@schedule_start.command(name="enable")
@click.option("--service-name", required=True, help="Resource group")
@click.option("--vm-name", required=True, help="VM name")
@click.option("--at", "at", required=True, help="Start time, HH:MM (UTC)")
@click.option("--days", help="Comma separated days, 'weekdays' or 'daily' (default: daily)")
@click.option("--config", help="Config file path", type=click.Path())
def schedule_enable(
    service_name: str, vm_name: str, at: str, days: str | None, config: str | None
):
    """Enable a daily scheduled start for a VM."""
    try:
        manager = StartScheduleManager(load_provider(config))
        schedule = manager.enable(service_name, vm_name, at, days)
    except ProvisionError as e:
        fail(e)

    click.echo(f"✓ Enabled scheduled start for {vm_name}")
    click.echo(f"  Time: {schedule.time_of_day} UTC")
    click.echo(f"  Days: {','.join(schedule.days)}")
    click.echo("\nRun 'azprov schedule-start run' periodically to start due VMs.")


@schedule_start.command(name="disable")
@click.option("--service-name", required=True, help="Resource group")
@click.option("--vm-name", required=True, help="VM name")
@click.option("--config", help="Config file path", type=click.Path())
def schedule_disable(service_name: str, vm_name: str, config: str | None):
    """Disable the scheduled start for a VM."""
    try:
        StartScheduleManager(load_provider(config)).disable(service_name, vm_name)
    except ProvisionError as e:
        fail(e)
    click.echo(f"✓ Disabled scheduled start for {vm_name}")


@schedule_start.command(name="show")
@click.option("--service-name", required=True, help="Resource group")
@click.option("--vm-name", required=True, help="VM name")
@click.option("--config", help="Config file path", type=click.Path())
def schedule_show(service_name: str, vm_name: str, config: str | None):
    """Show the scheduled start for a VM."""
    try:
        schedule = StartScheduleManager(load_provider(config)).get(service_name, vm_name)
    except ProvisionError as e:
        fail(e)

    if schedule is None:
        click.echo(f"No start schedule configured for {vm_name}")
        return

    click.echo(f"Start schedule for {vm_name}:")
    click.echo(f"  Status: {'enabled' if schedule.enabled else 'disabled'}")
    click.echo(f"  Time: {schedule.time_of_day} UTC")
    click.echo(f"  Days: {','.join(schedule.days)}")
    if schedule.last_start_time:
        click.echo(f"  Last start: {schedule.last_start_time.isoformat()}")


@schedule_start.command(name="run")
@click.option("--service-name", required=True, help="Resource group")
@click.option("--vm-name", help="Only check this VM")
@click.option("--config", help="Config file path", type=click.Path())
def schedule_run(service_name: str, vm_name: str | None, config: str | None):
    """Start every scheduled VM that is due."""
    try:
        results = StartScheduleManager(load_provider(config)).run_due(service_name, vm_name)
    except ProvisionError as e:
        fail(e)

    click.echo(
        f"Checked {results['checked']} VM(s): {results['started']} started, "
        f"{results['skipped']} skipped, {results['failed']} failed"
    )
    if results["failed"]:
        sys.exit(1)
