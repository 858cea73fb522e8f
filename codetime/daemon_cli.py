"""
CODETIME — Aggregation Daemon CLI.

Runs the aggregation scheduler outside the API server.

Commands:
    codetime-daemon start       Run the scheduler in the foreground
    codetime-daemon check       Run one aggregation pass and exit
"""

from __future__ import annotations

import asyncio
import signal
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from codetime import __version__, config
from codetime.aggregation import AggregationReport
from codetime.cli import setup_logging
from codetime.engine import CodetimeEngine

console = Console()


def _print_report(report: AggregationReport) -> None:
    table = Table(show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column(style="cyan", justify="right")
    table.add_row("Users scanned", str(report.users_scanned))
    table.add_row("Aggregated", str(report.aggregated))
    table.add_row("Days written", str(report.days_written))
    table.add_row("Skipped", str(report.skipped))
    table.add_row("Failed", str(report.failed))
    table.add_row("Pruned", str(report.pruned))
    style = "green" if report.ok else "red"
    console.print(Panel(table, title="📦 CODETIME aggregation", border_style=style))
    for user in report.failures:
        console.print(f"  [red]✗[/] {user}")


# ─── Click Group ────────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--db", default=None, help="Database path")
@click.pass_context
def main(ctx: click.Context, verbose: bool, db: str | None) -> None:
    """CODETIME aggregation daemon."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["db"] = db or config.DB_PATH
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@main.command()
@click.option(
    "--interval",
    type=int,
    default=None,
    help=f"Seconds between runs (default: {config.AGGREGATION_INTERVAL})",
)
@click.pass_context
def start(ctx: click.Context, interval: int | None) -> None:
    """Run the scheduler until SIGINT/SIGTERM."""

    async def _serve() -> None:
        engine = CodetimeEngine(ctx.obj["db"], interval=interval)
        await engine.init_db()
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                pass
        try:
            await engine.backfill_custom_languages()
            engine.scheduler.start()
            console.print(
                f"[green]🚀 CODETIME daemon v{__version__} started[/] "
                f"(interval={engine.scheduler.interval}s, workers={engine.scheduler.workers})"
            )
            await stop.wait()
            console.print("[yellow]Shutting down gracefully...[/]")
        finally:
            await engine.close()

    asyncio.run(_serve())


@main.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Run one aggregation pass and print the report."""

    async def _check() -> AggregationReport:
        async with CodetimeEngine(ctx.obj["db"]) as engine:
            return await engine.run_aggregation()

    report = asyncio.run(_check())
    _print_report(report)
    if not report.ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
