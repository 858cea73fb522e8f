"""
CODETIME CLI — Package init.

Re-exports the main CLI group and shared utilities.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from codetime import __version__, config
from codetime.engine import CodetimeEngine
from codetime.temporal import day_start, get_zone, now_utc
from codetime.timing.models import Summary, SummaryType

console = Console()


def setup_logging(verbose: bool = False, default_level: int = logging.INFO) -> None:
    level = logging.DEBUG if verbose else default_level
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s — %(message)s",
        datefmt="%H:%M:%S",
    )


def _run_async(coro):
    """Helper to run async coroutine from sync CLI."""
    return asyncio.run(coro)


def get_engine(db: Optional[str] = None) -> CodetimeEngine:
    """Create an engine instance."""
    return CodetimeEngine(db_path=db or config.DB_PATH)


def resolve_range(
    start: Optional[str], end: Optional[str], days: int, tz_name: Optional[str] = None
) -> tuple[datetime, datetime]:
    """Turn ``--from/--to/--days`` into a UTC ``[from, to)`` range.

    Dates are calendar days in ``tz_name``; ``--to`` is inclusive. Without
    ``--to`` the range ends now.
    """
    tz = get_zone(tz_name or config.DEFAULT_TIMEZONE)
    if end:
        to_time = day_start(date.fromisoformat(end) + timedelta(days=1), tz)
    else:
        to_time = now_utc()
    if start:
        from_time = day_start(date.fromisoformat(start), tz)
    else:
        today = to_time.astimezone(tz).date() if not end else date.fromisoformat(end)
        from_time = day_start(today - timedelta(days=max(days, 1) - 1), tz)
    if from_time > to_time:
        raise click.BadParameter("--from must not be after --to")
    return from_time, to_time


def render_summary(summary: Summary, title: str) -> None:
    """Print a Summary as one rich table per category."""
    if summary.total_seconds == 0:
        console.print("[yellow]No coding time in this range.[/]")
        return
    console.print(
        f"[bold]{title}[/]  total [cyan]{Summary.format_duration(summary.total_seconds)}[/]"
        f" ({summary.total_seconds}s)"
    )
    for summary_type in SummaryType:
        items = summary.items_of(summary_type)
        if not items:
            continue
        table = Table(title=summary_type.label.capitalize())
        table.add_column("Key", style="bold")
        table.add_column("Time", style="cyan", justify="right")
        table.add_column("Seconds", style="dim", justify="right")
        for item in items:
            table.add_row(item.key, Summary.format_duration(item.total_seconds), str(item.total_seconds))
        console.print(table)


# ─── Main Group ──────────────────────────────────────────────────

@click.group()
@click.version_option(__version__, prog_name="codetime")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """CODETIME — coding time from editor heartbeats."""
    setup_logging(verbose, logging.WARNING)


# ─── Register all sub-modules ───────────────────────────────────
from codetime.cli import time_cmds  # noqa: E402, F401
from codetime.cli import admin_cmds  # noqa: E402, F401
from codetime.cli import rules_cmds  # noqa: E402, F401


if __name__ == "__main__":
    cli()
