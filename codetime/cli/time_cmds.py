"""CLI commands: heartbeat, summary."""

from __future__ import annotations

import json

import click

from codetime.cli import _run_async, cli, console, get_engine, render_summary, resolve_range
from codetime.temporal import now_utc
from codetime.timing.models import Filters


@cli.command("heartbeat")
@click.argument("user")
@click.argument("entity", default="")
@click.option("--project", "-p", default="", help="Project name")
@click.option("--language", "-l", default="", help="Language (inferred from the entity if empty)")
@click.option("--editor", default="", help="Editor name")
@click.option("--os", "operating_system", default="", help="Operating system")
@click.option("--machine", default="", help="Machine name")
@click.option("--branch", "-b", default="", help="Git branch")
@click.option("--category", "-c", default="", help="Activity category")
@click.option("--write", "is_write", is_flag=True, help="The entity was saved")
@click.option("--time", "when", default=None, help="Epoch seconds or ISO time (default: now)")
@click.option("--db", default=None, help="Database path")
def heartbeat_cmd(
    user, entity, project, language, editor, operating_system, machine, branch,
    category, is_write, when, db,
) -> None:
    """Record an activity heartbeat."""

    async def _run():
        engine = get_engine(db)
        try:
            await engine.init_db()
            return await engine.ingest(user, [{
                "time": when or now_utc(),
                "entity": entity,
                "project": project,
                "language": language,
                "editor": editor,
                "operating_system": operating_system,
                "machine": machine,
                "branch": branch,
                "category": category,
                "is_write": is_write,
            }])
        finally:
            await engine.close()

    result = _run_async(_run())
    if result.rejected:
        console.print(f"[red]✗[/] Heartbeat rejected: {result.errors[0]}")
        raise SystemExit(1)
    status = "recorded" if result.inserted else "already recorded"
    console.print(f"[green]✓[/] Heartbeat {status} → [cyan]{user}[/] {project}/{entity}")


@cli.command("summary")
@click.argument("user")
@click.option("--from", "start", default=None, help="First day (YYYY-MM-DD)")
@click.option("--to", "end", default=None, help="Last day, inclusive (YYYY-MM-DD)")
@click.option("--days", "-d", default=1, help="Number of days when --from is omitted (default: 1 = today)")
@click.option("--project", default="", help="Filter by project")
@click.option("--language", default="", help="Filter by language")
@click.option("--editor", default="", help="Filter by editor")
@click.option("--os", "operating_system", default="", help="Filter by operating system")
@click.option("--machine", default="", help="Filter by machine")
@click.option("--tz", "tz_name", default=None, help="Timezone of the given dates")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.option("--db", default=None, help="Database path")
def summary_cmd(
    user, start, end, days, project, language, editor, operating_system, machine,
    tz_name, as_json, db,
) -> None:
    """Show coding time of USER. Filters combine with OR."""
    from_time, to_time = resolve_range(start, end, days, tz_name)
    filters = None
    if any((project, language, editor, operating_system, machine)):
        filters = Filters(
            project=project, language=language, editor=editor,
            os=operating_system, machine=machine,
        )

    async def _run():
        engine = get_engine(db)
        try:
            await engine.init_db()
            return await engine.get_summary(user, from_time, to_time, filters)
        finally:
            await engine.close()

    summary = _run_async(_run())
    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))
        return
    render_summary(summary, f"⏱ {user}: {from_time:%Y-%m-%d} → {to_time:%Y-%m-%d %H:%M}")
