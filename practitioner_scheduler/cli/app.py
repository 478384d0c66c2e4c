"""
Main CLI application using Typer.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Any, Dict, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.mock_windmill_client import MockWindmillClient
from ..adapters.windmill_client import WindmillClient
from ..config import AppConfig, get_default_config_path
from ..domain.conflict_checker import ConflictChecker
from ..domain.exceptions import SchedulingError
from ..domain.timezones import (
    candidates_to_utc,
    format_instant,
    format_local_time,
    localize_availability,
    timezone_abbreviation,
    to_local_string,
    to_utc,
)
from ..services.availability_service import AvailabilityService

app = typer.Typer(
    name="practitioner-scheduler",
    help="Calculate practitioner free time and check suggested appointments against it",
    add_completion=False
)

console = Console()


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _parse_date(value: str, label: str) -> str:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD").to_date_string()
    except ValueError as e:
        console.print(f"[red]Could not parse {label} {value!r}: {e}[/red]")
        raise typer.Exit(1)


def _load_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[bold red]Error:[/bold red] Could not read {path}: {e}")
        raise typer.Exit(1)


def _write_json(path: Path, data: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    console.print(f"[green]✓ Written to {path}[/green]")


def _print_free_slots(availability: Dict[str, Any], local: bool) -> None:
    tz = availability["practitionerTimezone"]
    summary = availability["summary"]

    console.print(
        f"[bold cyan]Practitioner {availability['practitionerId']}[/bold cyan] "
        f"({tz}, {timezone_abbreviation(tz)})"
    )
    console.print(
        f"   {summary['totalAvailabilityPeriods']} availability periods, "
        f"{summary['totalAppointments']} appointments, "
        f"{summary['totalFreeSlots']} free slots, "
        f"{summary['totalFreeMinutes']:g} free minutes\n"
    )

    if not availability["freeTimeSlots"]:
        console.print("[yellow]⚠ No free time slots found.[/yellow]")
        return

    slots = localize_availability(availability)["freeTimeSlots"] if local else availability["freeTimeSlots"]

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Duration", justify="right")
    table.add_column("Location", style="dim")
    if local:
        table.add_column("Day")
        table.add_column("Time of day")

    for slot in slots:
        row = [slot["startDateTime"], slot["endDateTime"], slot["duration"], str(slot["locationId"])]
        if local:
            row.extend([slot["dayOfWeek"], slot["timeOfDay"]])
        table.add_row(*row)

    console.print(table)


@app.command()
def availability(
    practitioner_id: Annotated[Optional[int], typer.Argument(help="Practitioner ID. Defaults to the configured one.")] = None,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD)")] = None,
    fallback_tz: Annotated[Optional[str], typer.Option("--fallback-tz", help="Timezone to use if the practitioner has none.")] = None,
    mock: Annotated[bool, typer.Option("--mock", help="Use bundled mock data instead of the gateway.")] = False,
    local: Annotated[bool, typer.Option("--local", help="Show slots in the practitioner's local time.")] = False,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write the availability JSON to this file.")] = None,
):
    """
    Calculate free time slots for a practitioner.

    Examples:

        practitioner-scheduler availability 46932 --start 2025-08-01 --end 2025-08-31

        practitioner-scheduler availability 46932 --mock --local
    """
    try:
        config = None
        if not mock or config_file:
            config = AppConfig.load_from_yaml(config_file or get_default_config_path())

        if practitioner_id is None:
            practitioner_id = config.defaults.practitioner_id if config else None
        if practitioner_id is None:
            console.print("[red]Error: no practitioner ID given and none configured.[/red]")
            raise typer.Exit(1)

        start_date = _parse_date(start, "start date") if start else pendulum.today("UTC").to_date_string()
        if end:
            end_date = _parse_date(end, "end date")
        else:
            range_days = config.defaults.range_days if config else 30
            end_date = pendulum.parse(start_date).add(days=range_days).to_date_string()

        if mock:
            console.print("[yellow]⚠  MOCK MODE: using bundled test data[/yellow]\n")
            client = MockWindmillClient()
        else:
            client = WindmillClient(
                base_url=config.gateway.base_url,
                workspace_id=config.gateway.workspace_id,
                token=config.gateway.resolved_token(),
                timeout_seconds=config.gateway.request_timeout_seconds,
            )

        service = AvailabilityService(
            client=client,
            deadline_seconds=config.fetch_deadline_seconds if config else 60,
        )

        result = asyncio.run(
            service.calculate_availability(
                practitioner_id=practitioner_id,
                start_date=start_date,
                end_date=end_date,
                fallback_timezone=fallback_tz or (config.fallback_timezone if config else None),
            )
        )

        _print_free_slots(result, local=local)

        if output:
            _write_json(output, result)

    except (SchedulingError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def check(
    availability_file: Annotated[Path, typer.Argument(help="Availability JSON produced by the availability command.")],
    suggestions_file: Annotated[Path, typer.Argument(help="JSON with a suggestedAppointments list.")],
    local_times: Annotated[bool, typer.Option("--local-times", help="Suggestions use the practitioner's local time.")] = False,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write the annotated suggestions to this file.")] = None,
):
    """
    Check suggested appointments against calculated free time.
    """
    availability_data = _load_json(availability_file)
    suggestions = _load_json(suggestions_file)

    try:
        if (
            local_times
            and isinstance(availability_data, dict)
            and isinstance(suggestions, dict)
            and isinstance(suggestions.get("suggestedAppointments"), list)
        ):
            # Anything else is left for the checker to report
            suggestions = dict(suggestions)
            suggestions["suggestedAppointments"] = candidates_to_utc(
                suggestions["suggestedAppointments"],
                availability_data.get("practitionerTimezone"),
            )

        result = ConflictChecker().check_conflicts(availability_data, suggestions)
    except SchedulingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    summary = result["summary"]
    for error in summary["validationErrors"]:
        console.print(f"[red]✗ {error}[/red]")

    table = Table(title="Suggested appointments", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Location", style="dim")
    table.add_column("Status")
    table.add_column("Details")

    for index, appointment in enumerate(result["suggestedAppointments"], 1):
        if appointment["hasConflict"]:
            status = "[red]conflict[/red]"
            details = "; ".join(
                detail if isinstance(detail, str)
                else f"{detail['type']}: {detail['overlapStart']} to {detail['overlapEnd']}"
                for detail in appointment["conflictDetails"]
            )
        else:
            status = "[green]valid[/green]"
            matched = appointment["matchedSlot"]
            details = f"slot {matched['startDateTime']} to {matched['endDateTime']}"
        table.add_row(
            str(index),
            str(appointment.get("start")),
            str(appointment.get("end")),
            str(appointment.get("locationId")),
            status,
            details,
        )

    console.print()
    console.print(table)
    console.print(
        f"\n[bold]{summary['totalValid']} valid[/bold], "
        f"[bold]{summary['totalConflicted']} conflicted[/bold]\n"
    )

    if output:
        _write_json(output, result)


@app.command("to-utc")
def to_utc_command(
    timestamp: Annotated[str, typer.Argument(help="Civil timestamp, e.g. 2025-08-26T14:00:00")],
    tz: Annotated[str, typer.Option("--tz", help="IANA timezone of the timestamp")],
):
    """
    Convert a local civil timestamp to a UTC instant.
    """
    try:
        console.print(format_instant(to_utc(timestamp, tz)))
    except SchedulingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command("to-local")
def to_local_command(
    instant: Annotated[str, typer.Argument(help="UTC timestamp, e.g. 2025-08-26T04:00:00Z")],
    tz: Annotated[str, typer.Option("--tz", help="IANA timezone to convert into")],
):
    """
    Convert a UTC instant to local time in a timezone.
    """
    try:
        console.print(to_local_string(instant, tz))
        console.print(f"[dim]{format_local_time(instant, tz)}[/dim]")
    except SchedulingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]practitioner-scheduler[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
