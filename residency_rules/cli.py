"""CLI for residency goal tracking."""

import json
import time
import uuid
from datetime import date
from pathlib import Path
import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.markup import escape
from pydantic import ValidationError

from .config import settings
from .core.dates import parse_date
from .core.exceptions import ResidencyRulesError, UnsupportedGoalTypeError
from .core.types import (
    GoalCalculation,
    GoalStatus,
    GoalType,
    TrackingGoal,
    TripRecord,
    UKILRConfig,
    WarningSeverity,
    default_jurisdiction,
    parse_goal_config,
)
from .observability.logging import log_calculation, setup_logging
from .rules.checks import calculate_trip_durations
from .rules.registry import calculate_goal, get_default_registry
from .storage.migrations import init_db, reset_db
from .storage.models import Storage

app = typer.Typer(
    name="residency",
    help="Residency goal tracker - travel history against immigration absence rules",
)
console = Console()

DB_PATH = settings.database_path

STATUS_STYLES = {
    GoalStatus.ELIGIBLE: "green",
    GoalStatus.ACHIEVED: "green",
    GoalStatus.ON_TRACK: "green",
    GoalStatus.IN_PROGRESS: "cyan",
    GoalStatus.NOT_STARTED: "dim",
    GoalStatus.AT_RISK: "yellow",
    GoalStatus.LIMIT_EXCEEDED: "red",
}

SEVERITY_STYLES = {
    WarningSeverity.INFO: "cyan",
    WarningSeverity.WARNING: "yellow",
    WarningSeverity.ERROR: "red",
}


@app.callback()
def main(
    db: Path = typer.Option(None, "--db", help="Path to the SQLite database"),
    log_level: str = typer.Option(None, "--log-level", help="Logging level"),
):
    """Configure storage location and logging."""
    global DB_PATH
    if db is not None:
        DB_PATH = db
    setup_logging(
        level=log_level or settings.log_level,
        json_output=settings.log_json,
        service_name=settings.service_name,
    )


def ensure_db():
    """Ensure database is initialized."""
    if not DB_PATH.exists():
        init_db(DB_PATH)


def _new_id() -> str:
    return str(uuid.uuid4())[:8]


def _load_json(path: Path):
    """Read a JSON input file, exiting with an error when it is missing or malformed."""
    if not path.exists():
        console.print(f"[red]Error: File {path} not found.[/red]")
        raise typer.Exit(1)

    try:
        with open(path) as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: {path} is not valid JSON: {escape(str(e))}[/red]")
        raise typer.Exit(1)


@app.command("init")
def init_command():
    """Initialize the database."""
    init_db(DB_PATH)
    console.print("[green]Database initialized successfully.[/green]")


@app.command("reset")
def reset_command(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Reset the database (WARNING: deletes all data)."""
    if not force:
        confirm = typer.confirm("This will delete all trips and goals. Are you sure?")
        if not confirm:
            raise typer.Abort()

    reset_db(DB_PATH)
    console.print("[green]Database reset successfully.[/green]")


@app.command("trip-add")
def trip_add_command(
    out_date: str = typer.Option(None, "--out", help="Departure date (YYYY-MM-DD)"),
    in_date: str = typer.Option(None, "--in", help="Return date (YYYY-MM-DD)"),
    out_route: str = typer.Option("", "--out-route", help="Outbound route, e.g. LHR-JFK"),
    in_route: str = typer.Option("", "--in-route", help="Return route"),
    title: str = typer.Option(None, "--title", help="Trip label"),
    trip_id: str = typer.Option(None, "--id", help="Trip ID (generated if omitted)"),
):
    """Add a trip. Either date may be left out and filled in later."""
    ensure_db()

    try:
        for value in (out_date, in_date):
            if value:
                parse_date(value)
    except ResidencyRulesError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    trip = TripRecord(
        id=trip_id or _new_id(),
        title=title,
        out_date=out_date,
        in_date=in_date,
        out_route=out_route,
        in_route=in_route,
    )
    Storage(DB_PATH).save_trip(trip)

    console.print(f"[green]Trip '{trip.id}' saved.[/green]")


@app.command("trip-import")
def trip_import_command(
    trips_file: Path = typer.Argument(..., help="Path to a JSON list of trips"),
):
    """Import trips from a JSON file."""
    ensure_db()

    data = _load_json(trips_file)
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        console.print("[red]Error: Trips file must contain a JSON list of trip objects.[/red]")
        raise typer.Exit(1)

    trips = []
    try:
        for item in data:
            item.setdefault("id", _new_id())
            trips.append(TripRecord.model_validate(item))
    except ValidationError as e:
        console.print(f"[red]Invalid trip data: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    Storage(DB_PATH).save_trips(trips)
    console.print(f"[green]Imported {len(trips)} trips.[/green]")


@app.command("trip-list")
def trip_list_command():
    """List all trips with their day counts."""
    ensure_db()
    trips = Storage(DB_PATH).load_all_trips()

    if not trips:
        console.print("[yellow]No trips recorded. Add one with 'residency trip-add'.[/yellow]")
        return

    try:
        calculated = calculate_trip_durations(trips)
    except ResidencyRulesError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    table = Table(title="Trips")
    table.add_column("ID", style="cyan")
    table.add_column("Out", style="white")
    table.add_column("In", style="white")
    table.add_column("Route", style="white")
    table.add_column("Calendar Days", style="green")
    table.add_column("Full Days", style="green")

    for trip in calculated:
        table.add_row(
            trip.id,
            trip.out_date or "-",
            trip.in_date or "-",
            f"{trip.out_route or '?'} / {trip.in_route or '?'}",
            str(trip.calendar_days) if trip.calendar_days is not None else "[yellow]incomplete[/yellow]",
            str(trip.full_days) if trip.full_days is not None else "-",
        )

    console.print(table)


@app.command("trip-delete")
def trip_delete_command(
    trip_id: str = typer.Argument(..., help="Trip ID"),
):
    """Delete a trip."""
    ensure_db()
    if not Storage(DB_PATH).delete_trip(trip_id):
        console.print(f"[red]Trip '{trip_id}' not found.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Trip '{trip_id}' deleted.[/green]")


@app.command("goal-add")
def goal_add_command(
    goal_file: Path = typer.Argument(..., help="Path to goal JSON ({name, config})"),
):
    """Register a tracking goal."""
    ensure_db()

    data = _load_json(goal_file)
    if not isinstance(data, dict):
        console.print("[red]Error: Goal file must contain a JSON object.[/red]")
        raise typer.Exit(1)

    try:
        config = parse_goal_config(data.get("config", {}))
    except ResidencyRulesError as e:
        console.print(f"[red]Invalid goal config: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    goal_type = GoalType(config.type)
    try:
        goal = TrackingGoal(
            goal_id=data.get("goal_id") or _new_id(),
            name=data.get("name") or goal_type.value,
            goal_type=goal_type,
            jurisdiction=default_jurisdiction(goal_type),
            config=config,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid goal: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    Storage(DB_PATH).save_goal(goal)

    if not get_default_registry().is_supported(goal_type):
        console.print(f"[yellow]Goal type '{goal_type.value}' has no rule engine yet; it cannot be calculated.[/yellow]")
    console.print(f"[green]Goal '{goal.goal_id}' ({goal.name}) registered.[/green]")


@app.command("goal-list")
def goal_list_command():
    """List all tracking goals."""
    ensure_db()
    goals = Storage(DB_PATH).load_all_goals()

    if not goals:
        console.print("[yellow]No goals registered. Add one with 'residency goal-add'.[/yellow]")
        return

    table = Table(title="Tracking Goals")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Type", style="green")
    table.add_column("Jurisdiction", style="yellow")
    table.add_column("Active", style="white")

    for goal in goals:
        table.add_row(
            goal.goal_id,
            goal.name,
            goal.goal_type.value,
            goal.jurisdiction.value,
            "Yes" if goal.is_active else "No",
        )

    console.print(table)


def _print_calculation(goal: TrackingGoal, calculation: GoalCalculation) -> None:
    style = STATUS_STYLES.get(calculation.status, "white")
    lines = [f"[{style}]{calculation.status.value.upper()}[/{style}]"]
    if calculation.eligibility_date:
        lines.append(f"Eligibility date: {calculation.eligibility_date.isoformat()}")
    if calculation.days_until_eligible is not None:
        lines.append(f"Days until eligible: {calculation.days_until_eligible}")
    lines.append(f"Progress: {calculation.progress_percent}%")
    console.print(Panel("\n".join(lines), title=goal.name))

    if calculation.metrics:
        table = Table(title="Metrics")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="white")
        table.add_column("Limit", style="white")
        table.add_column("Status", style="white")
        for metric in calculation.metrics:
            table.add_row(
                metric.label,
                str(metric.value),
                str(metric.limit) if metric.limit is not None else "-",
                metric.status.value,
            )
        console.print(table)

    for warning in calculation.warnings:
        warning_style = SEVERITY_STYLES[warning.severity]
        console.print(f"\n[{warning_style}]{warning.title}:[/{warning_style}] {warning.message}")
        for detail in warning.details:
            console.print(f"  - {detail}")


@app.command("calculate")
def calculate_command(
    goal_id: str = typer.Argument(..., help="Goal ID to calculate"),
    as_of: str = typer.Option(None, "--as-of", help="Evaluate as of this date instead of today"),
    as_json: bool = typer.Option(False, "--json", help="Print the calculation as JSON"),
):
    """Calculate a goal against the recorded trips."""
    ensure_db()
    storage = Storage(DB_PATH)

    goal = storage.load_goal(goal_id)
    if goal is None:
        console.print(f"[red]Goal '{goal_id}' not found.[/red]")
        raise typer.Exit(1)

    trips = storage.load_all_trips()
    started = time.perf_counter()

    try:
        evaluation_date = parse_date(as_of) if as_of else date.today()
        calculation = calculate_goal(get_default_registry(), goal, trips, as_of=evaluation_date)
    except UnsupportedGoalTypeError as e:
        console.print(f"[red]{escape(str(e))}.[/red]")
        raise typer.Exit(1)
    except ResidencyRulesError as e:
        console.print(f"[red]Calculation error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    log_calculation(
        goal_id=goal.goal_id,
        goal_type=goal.goal_type.value,
        status=calculation.status.value,
        trip_count=len(trips),
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )

    if as_json:
        typer.echo(calculation.model_dump_json(indent=2))
        return

    _print_calculation(goal, calculation)


@app.command("engines")
def engines_command():
    """List the registered rule engines."""
    table = Table(title="Rule Engines")
    table.add_column("Goal Type", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Jurisdiction", style="green")
    table.add_column("Category", style="yellow")

    for engine in get_default_registry().get_all():
        info = engine.get_display_info()
        table.add_row(
            engine.goal_type.value,
            info.name,
            engine.jurisdiction.value,
            info.category.value,
        )

    console.print(table)


@app.command("demo-seed")
def demo_seed_command():
    """Seed database with example data for demonstration."""
    ensure_db()
    storage = Storage(DB_PATH)

    trips = [
        TripRecord(id="demo-1", title="Christmas at home", out_date="2023-12-20", in_date="2024-01-05",
                   out_route="LHR-DEL", in_route="DEL-LHR"),
        TripRecord(id="demo-2", title="Conference", out_date="2024-04-08", in_date="2024-04-14",
                   out_route="LGW-BCN", in_route="BCN-LGW"),
        TripRecord(id="demo-3", title="Summer", out_date="2024-07-15", in_date="2024-08-20",
                   out_route="MAN-JFK", in_route="JFK-MAN"),
        TripRecord(id="demo-4", title="Work trip", out_date="2025-02-03", in_date="2025-02-28",
                   out_route="LHR-SIN", in_route="SIN-LHR"),
    ]
    storage.save_trips(trips)
    console.print(f"[green]Added {len(trips)} sample trips.[/green]")

    goal = TrackingGoal(
        goal_id="demo-ilr",
        name="ILR (5-year route)",
        goal_type=GoalType.UK_ILR,
        jurisdiction=default_jurisdiction(GoalType.UK_ILR),
        config=UKILRConfig(
            track_years=5,
            visa_start_date="2023-03-01",
            vignette_entry_date="2023-02-20",
        ),
    )
    storage.save_goal(goal)
    console.print("[green]Registered example ILR goal.[/green]")

    console.print("\n[bold]Demo seed complete![/bold]")
    console.print("\nTry these commands:")
    console.print("  residency trip-list")
    console.print("  residency calculate demo-ilr")


if __name__ == "__main__":
    app()
