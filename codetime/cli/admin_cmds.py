"""CLI commands: aggregate, regenerate, backfill, import, prune, serve."""

from __future__ import annotations

import sys

import click
from rich.table import Table

from codetime.cli import _run_async, cli, console, get_engine
from codetime.exceptions import CodetimeError
from codetime.importer import HeartbeatImporter
from codetime.timing.models import LanguageMapping


@cli.command("aggregate")
@click.option("--db", default=None, help="Database path")
def aggregate_cmd(db) -> None:
    """Run one aggregation pass over all users."""

    async def _run():
        engine = get_engine(db)
        try:
            await engine.init_db()
            return await engine.run_aggregation()
        finally:
            await engine.close()

    report = _run_async(_run())
    table = Table(title="📦 Aggregation")
    table.add_column("Metric", style="bold")
    table.add_column("Value", style="cyan", justify="right")
    table.add_row("Users scanned", str(report.users_scanned))
    table.add_row("Aggregated", str(report.aggregated))
    table.add_row("Days written", str(report.days_written))
    table.add_row("Skipped", str(report.skipped))
    table.add_row("Failed", str(report.failed))
    if report.pruned:
        table.add_row("Heartbeats pruned", str(report.pruned))
    console.print(table)
    if not report.ok:
        sys.exit(1)


@cli.command("regenerate")
@click.argument("user")
@click.option("--db", default=None, help="Database path")
def regenerate_cmd(user, db) -> None:
    """Delete and rebuild all daily summaries of USER."""

    async def _run():
        engine = get_engine(db)
        try:
            await engine.init_db()
            return await engine.regenerate_summaries(user)
        finally:
            await engine.close()

    try:
        days = _run_async(_run())
    except CodetimeError as e:
        console.print(f"[red]✗ {e}[/]")
        sys.exit(1)
    console.print(f"[green]✓[/] Regenerated [bold]{days}[/] day(s) for [cyan]{user}[/]")


@cli.command("backfill")
@click.argument("user", required=False)
@click.argument("extension", required=False)
@click.argument("language", required=False)
@click.option("--custom", is_flag=True, help="Apply the server-wide custom languages instead")
@click.option("--db", default=None, help="Database path")
def backfill_cmd(user, extension, language, custom, db) -> None:
    """Set LANGUAGE on USER's stored heartbeats ending in .EXTENSION that have none."""
    if not custom and not (user and extension and language):
        raise click.UsageError("USER, EXTENSION and LANGUAGE are required without --custom")

    async def _run():
        engine = get_engine(db)
        try:
            await engine.init_db()
            if custom:
                return await engine.backfill_custom_languages()
            return await engine.backfill_language(LanguageMapping(user, extension, language))
        finally:
            await engine.close()

    try:
        rows = _run_async(_run())
    except CodetimeError as e:
        console.print(f"[red]✗ {e}[/]")
        sys.exit(1)
    console.print(f"[green]✓[/] Back-filled [bold]{rows}[/] heartbeat(s)")


@cli.command("import")
@click.argument("user")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--batch-size", type=int, default=None, help="Heartbeats per insert batch")
@click.option("--no-regenerate", is_flag=True, help="Skip summary regeneration afterwards")
@click.option("--db", default=None, help="Database path")
def import_cmd(user, path, batch_size, no_regenerate, db) -> None:
    """Import heartbeats for USER from a JSON-lines file or a WakaTime export."""

    async def _run():
        engine = get_engine(db)
        try:
            await engine.init_db()
            importer = HeartbeatImporter(engine, batch_size=batch_size)
            return await importer.import_file(user, path, regenerate=not no_regenerate)
        finally:
            await engine.close()

    try:
        result = _run_async(_run())
    except (CodetimeError, ValueError) as e:
        console.print(f"[red]✗ Import failed: {e}[/]")
        sys.exit(1)
    console.print(
        f"[green]✓[/] Imported [bold]{result.inserted}[/] heartbeat(s) "
        f"({result.read} read, {result.skipped} already present, {result.rejected} rejected)"
    )


@cli.command("prune")
@click.option("--days", type=int, default=None, help="Retention in days (default: CODETIME_RETENTION_DAYS)")
@click.option("--db", default=None, help="Database path")
def prune_cmd(days, db) -> None:
    """Delete aggregated raw heartbeats older than the retention window."""

    async def _run():
        engine = get_engine(db)
        try:
            await engine.init_db()
            return await engine.prune_heartbeats(days)
        finally:
            await engine.close()

    deleted = _run_async(_run())
    console.print(f"[green]✓[/] Pruned [bold]{deleted}[/] heartbeat(s)")


@cli.command("serve")
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", type=int, default=8000, help="Bind port")
@click.option("--reload", "reload_", is_flag=True, help="Reload on code changes")
def serve_cmd(host, port, reload_) -> None:
    """Run the REST API (and the in-process scheduler) with uvicorn."""
    import uvicorn

    uvicorn.run("codetime.api:app", host=host, port=port, reload=reload_, log_level="info")
