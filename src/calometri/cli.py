"""CLI interface using Typer."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from calometri.config import get_settings
from calometri.db import get_db
from calometri.errors import ConstraintViolation, StorageUnavailable, ValidationError
from calometri.telemetry import configure_logging
from calometri.tracking.models import (
    Entry,
    EntryUpdate,
    InsufficientData,
    NewEntry,
    parse_date,
)
from calometri.tracking.queries import EntryStore
from calometri.tracking.stats import StatsService

app = typer.Typer(
    help="Daily weight and calorie log with TDEE estimation",
    no_args_is_help=True,
)
console = Console()

# Subcommand groups
entries_app = typer.Typer(help="Log and browse daily weight/calorie entries")
stats_app = typer.Typer(help="TDEE estimation and weight trend")

app.add_typer(entries_app, name="entries")
app.add_typer(stats_app, name="stats")

USER_OPTION_HELP = "User ID (or set CALOMETRI_USER)"


# ============================================================================
# Helpers
# ============================================================================


def output_json(response: dict, file=None) -> None:
    """Output JSON response to stdout or file."""
    json_str = json.dumps(response, indent=2)
    if file:
        file.write(json_str)
    else:
        print(json_str)


def fail(
    command: str,
    message: str,
    json_output: bool,
    suggestions: Optional[list[str]] = None,
    exit_code: int = 1,
) -> None:
    """Report an error in the requested format and exit."""
    if json_output:
        output_json({
            "success": False,
            "command": command,
            "errors": [message],
            "suggestions": suggestions or [],
        })
    else:
        console.print(f"[red]{message}[/red]")
        for suggestion in suggestions or []:
            console.print(f"[dim]{suggestion}[/dim]")
    raise typer.Exit(exit_code)


def get_store() -> EntryStore:
    """Build an entry store on the configured database, creating tables if needed.

    Raises:
        StorageUnavailable: If the database cannot be opened
    """
    db = get_db()
    db.initialize_schema()
    return EntryStore(db)


def setup_logging() -> None:
    """Configure logging from settings."""
    settings = get_settings()
    configure_logging(settings.logging.level, settings.logging.json)


def render_entries(entries: list[Entry], title: str) -> None:
    table = Table(title=title)
    table.add_column("Date", style="cyan")
    table.add_column("Weight", justify="right")
    table.add_column("Calories", justify="right")
    table.add_column("ID", style="dim")

    for entry in entries:
        table.add_row(
            entry.date.isoformat(),
            f"{entry.weight}",
            f"{entry.calories}",
            entry.entry_id,
        )

    console.print(table)


@entries_app.callback()
def entries_callback() -> None:
    """Configure logging before any entries command."""
    setup_logging()


@stats_app.callback()
def stats_callback() -> None:
    """Configure logging before any stats command."""
    setup_logging()


# ============================================================================
# Entry Commands
# ============================================================================


@entries_app.command("add")
def entries_add(
    weight: str = typer.Argument(..., help="Weight in lbs"),
    calories: int = typer.Argument(..., help="Calories eaten that day"),
    date_str: Optional[str] = typer.Option(
        None, "--date", "-d", help="Date (YYYY-MM-DD, default: today in UTC)"
    ),
    user_id: str = typer.Option(..., "--user", "-u", envvar="CALOMETRI_USER", help=USER_OPTION_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Log weight and calories for a day (replaces that day's entry)."""
    try:
        new_entry = NewEntry(
            user_id=user_id,
            date=parse_date(date_str) if date_str else datetime.now(timezone.utc).date(),
            weight=weight,  # type: ignore[arg-type]
            calories=calories,
        )
        entry = asyncio.run(get_store().upsert(new_entry))
    except ValidationError as exc:
        fail("entries add", str(exc), json_output)
    except StorageUnavailable as exc:
        fail("entries add", str(exc), json_output, ["Check the database path in ~/.calometri/config.yaml"])

    if json_output:
        output_json({
            "success": True,
            "command": "entries add",
            "data": entry.to_dict(),
            "human_summary": f"Logged {entry.weight} lbs, {entry.calories} kcal on {entry.date}",
        })
    else:
        console.print(f"[green]Logged:[/green] {entry.weight} lbs, {entry.calories} kcal on {entry.date}")


@entries_app.command("list")
def entries_list(
    user_id: str = typer.Option(..., "--user", "-u", envvar="CALOMETRI_USER", help=USER_OPTION_HELP),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Entries per page"),
    offset: int = typer.Option(0, "--offset", help="Entries to skip"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List entries, newest first."""
    if limit is None:
        limit = get_settings().analytics.entries_page_size

    try:
        entries = asyncio.run(get_store().get_by_user(user_id, limit=limit, offset=offset))
    except ValidationError as exc:
        fail("entries list", str(exc), json_output)
    except StorageUnavailable as exc:
        fail("entries list", str(exc), json_output)

    if json_output:
        output_json({
            "success": True,
            "command": "entries list",
            "data": {"entries": [e.to_dict() for e in entries]},
            "human_summary": f"{len(entries)} entries",
        })
    elif not entries:
        console.print("No entries found")
    else:
        render_entries(entries, f"Entries for {user_id}")


@entries_app.command("range")
def entries_range(
    start: str = typer.Argument(..., help="First date (YYYY-MM-DD)"),
    end: str = typer.Argument(..., help="Last date (YYYY-MM-DD)"),
    user_id: str = typer.Option(..., "--user", "-u", envvar="CALOMETRI_USER", help=USER_OPTION_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List entries between two dates, inclusive."""
    try:
        entries = asyncio.run(get_store().get_by_user_in_range(user_id, start, end))
    except ValidationError as exc:
        fail("entries range", str(exc), json_output)
    except StorageUnavailable as exc:
        fail("entries range", str(exc), json_output)

    if json_output:
        output_json({
            "success": True,
            "command": "entries range",
            "data": {"entries": [e.to_dict() for e in entries]},
            "human_summary": f"{len(entries)} entries from {start} to {end}",
        })
    elif not entries:
        console.print(f"No entries between {start} and {end}")
    else:
        render_entries(entries, f"Entries {start} to {end}")


@entries_app.command("show")
def entries_show(
    entry_id: str = typer.Argument(..., help="Entry ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show a single entry."""
    try:
        entry = asyncio.run(get_store().get_by_id(entry_id))
    except StorageUnavailable as exc:
        fail("entries show", str(exc), json_output)

    if entry is None:
        fail("entries show", f"Entry not found: {entry_id}", json_output)

    if json_output:
        output_json({"success": True, "command": "entries show", "data": entry.to_dict()})
    else:
        render_entries([entry], f"Entry {entry_id}")


@entries_app.command("update")
def entries_update(
    entry_id: str = typer.Argument(..., help="Entry ID"),
    date_str: Optional[str] = typer.Option(None, "--date", "-d", help="New date (YYYY-MM-DD)"),
    weight: Optional[str] = typer.Option(None, "--weight", "-w", help="New weight in lbs"),
    calories: Optional[int] = typer.Option(None, "--calories", "-c", help="New calorie count"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Change fields of an existing entry."""
    try:
        changes = EntryUpdate(date=date_str, weight=weight, calories=calories)  # type: ignore[arg-type]
        if changes.is_empty():
            fail(
                "entries update",
                "Nothing to update",
                json_output,
                ["Pass at least one of --date, --weight or --calories"],
            )
        entry = asyncio.run(get_store().update(entry_id, changes))
    except ValidationError as exc:
        fail("entries update", str(exc), json_output)
    except ConstraintViolation as exc:
        fail("entries update", str(exc), json_output, ["Update or delete the existing entry instead"])
    except StorageUnavailable as exc:
        fail("entries update", str(exc), json_output)

    if entry is None:
        fail("entries update", f"Entry not found: {entry_id}", json_output)

    if json_output:
        output_json({"success": True, "command": "entries update", "data": entry.to_dict()})
    else:
        console.print(f"[green]Updated:[/green] {entry.date} {entry.weight} lbs, {entry.calories} kcal")


@entries_app.command("delete")
def entries_delete(
    entry_id: str = typer.Argument(..., help="Entry ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Delete an entry."""
    try:
        deleted = asyncio.run(get_store().delete(entry_id))
    except StorageUnavailable as exc:
        fail("entries delete", str(exc), json_output)

    if not deleted:
        fail("entries delete", f"Entry not found: {entry_id}", json_output)

    if json_output:
        output_json({"success": True, "command": "entries delete", "data": {"id": entry_id}})
    else:
        console.print(f"[green]Deleted entry {entry_id}[/green]")


# ============================================================================
# Stats Commands
# ============================================================================


@stats_app.command("tdee")
def stats_tdee(
    user_id: str = typer.Option(..., "--user", "-u", envvar="CALOMETRI_USER", help=USER_OPTION_HELP),
    days: Optional[int] = typer.Option(None, "--days", help="Analysis window in days (default: 28)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Estimate TDEE and weight trend from recent entries."""
    import structlog

    settings = get_settings()

    try:
        service = StatsService(
            get_store(),
            config=settings.analytics,
            logger=structlog.get_logger("calometri.stats").bind(environment=settings.environment),
        )
        result = asyncio.run(service.get_tdee_stats(user_id, window_days=days))
    except ValidationError as exc:
        fail("stats tdee", str(exc), json_output)
    except StorageUnavailable as exc:
        fail("stats tdee", str(exc), json_output)

    if isinstance(result, InsufficientData):
        message = (
            f"Need at least {result.minimum_required} entries within the last "
            f"{result.window_days} days"
        )
        if json_output:
            output_json({
                "success": False,
                "command": "stats tdee",
                "insufficient_data": True,
                "data": result.to_dict(),
                "errors": ["Insufficient data"],
                "suggestions": ["Log daily with: calometri entries add <weight> <calories>"],
            })
        else:
            console.print(f"[yellow]Insufficient data.[/yellow] {message}")
        raise typer.Exit(2)

    if json_output:
        output_json({
            "success": True,
            "command": "stats tdee",
            "data": result.to_dict(),
            "human_summary": f"TDEE: {result.current_tdee} kcal/day ({result.weight_trend.value})",
        })
    else:
        console.print(f"[bold]Your TDEE: {result.current_tdee} kcal/day[/bold]")
        console.print(f"  Average weight: {result.weekly_average_weight} lbs")
        console.print(f"  Average intake: {result.weekly_average_calories} kcal/day")
        console.print(f"  Trend: {result.weight_trend.value}")
        console.print(f"[dim]Based on {result.data_points} entries[/dim]")


# ============================================================================
# Health
# ============================================================================


@app.command("health")
def health(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Check database connectivity and report the number of stored entries."""
    settings = get_settings()
    db = get_db()
    check = db.check_connection()
    entry_count = db.get_table_count("entries") if check.connected else None

    if json_output:
        response = {
            "status": "ok" if check.connected else "degraded",
            "environment": settings.environment,
            "database": "connected" if check.connected else "disconnected",
        }
        if check.connected:
            response["entries"] = entry_count
        else:
            response["databaseError"] = check.error
        output_json(response)
    elif check.connected:
        console.print(f"[green]ok[/green] ({settings.environment}) database connected, {entry_count} entries")
    else:
        console.print(f"[yellow]degraded[/yellow] ({settings.environment}) database disconnected: {check.error}")

    if not check.connected:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
