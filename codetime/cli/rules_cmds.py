"""CLI commands: alias, mapping."""

from __future__ import annotations

import sys

import click
from rich.table import Table

from codetime.cli import _run_async, cli, console, get_engine
from codetime.exceptions import CodetimeError

TYPE_CHOICES = click.Choice(["project", "language", "editor", "os", "machine"])


def _with_engine(db, fn):
    async def _run():
        engine = get_engine(db)
        try:
            await engine.init_db()
            return await fn(engine)
        finally:
            await engine.close()

    try:
        return _run_async(_run())
    except CodetimeError as e:
        console.print(f"[red]✗ {e}[/]")
        sys.exit(1)


# ─── Aliases ─────────────────────────────────────────────────────

@cli.group("alias")
def alias_group() -> None:
    """Manage category aliases."""


@alias_group.command("add")
@click.argument("user")
@click.argument("type_", metavar="TYPE", type=TYPE_CHOICES)
@click.argument("value")
@click.argument("key")
@click.option("--db", default=None, help="Database path")
def alias_add(user, type_, value, key, db) -> None:
    """Resolve raw VALUE of TYPE to canonical KEY."""
    alias = _with_engine(db, lambda e: e.add_alias(user, type_, key, value))
    console.print(f"[green]✓[/] {alias.type.label}: [bold]{alias.value}[/] → [cyan]{alias.key}[/]")
    console.print("[dim]Run `codetime regenerate` to apply it to stored daily summaries.[/]")


@alias_group.command("list")
@click.argument("user")
@click.option("--db", default=None, help="Database path")
def alias_list(user, db) -> None:
    """List aliases of USER."""
    aliases = _with_engine(db, lambda e: e.list_aliases(user))
    if not aliases:
        console.print("[yellow]No aliases.[/]")
        return
    table = Table(title=f"Aliases of {user}")
    table.add_column("Type", style="bold")
    table.add_column("Raw key")
    table.add_column("Canonical key", style="cyan")
    for alias in aliases:
        table.add_row(alias.type.label, alias.value, alias.key)
    console.print(table)


@alias_group.command("delete")
@click.argument("user")
@click.argument("type_", metavar="TYPE", type=TYPE_CHOICES)
@click.argument("value")
@click.option("--db", default=None, help="Database path")
def alias_delete(user, type_, value, db) -> None:
    """Delete the alias of raw VALUE."""
    deleted = _with_engine(db, lambda e: e.delete_alias(user, type_, value))
    if not deleted:
        console.print(f"[yellow]No alias for {value!r}.[/]")
        return
    console.print(f"[green]✓[/] Alias for [bold]{value}[/] deleted")


# ─── Language mappings ───────────────────────────────────────────

@cli.group("mapping")
def mapping_group() -> None:
    """Manage file extension → language mappings."""


@mapping_group.command("add")
@click.argument("user")
@click.argument("extension")
@click.argument("language")
@click.option("--backfill", is_flag=True, help="Also apply to stored heartbeats without a language")
@click.option("--db", default=None, help="Database path")
def mapping_add(user, extension, language, backfill, db) -> None:
    """Map files ending in .EXTENSION to LANGUAGE."""
    mapping = _with_engine(
        db, lambda e: e.add_language_mapping(user, extension, language, backfill=backfill)
    )
    console.print(f"[green]✓[/] .{mapping.extension} → [cyan]{mapping.language}[/]")


@mapping_group.command("list")
@click.argument("user")
@click.option("--db", default=None, help="Database path")
def mapping_list(user, db) -> None:
    """List language mappings of USER."""
    mappings = _with_engine(db, lambda e: e.list_language_mappings(user))
    if not mappings:
        console.print("[yellow]No language mappings.[/]")
        return
    table = Table(title=f"Language mappings of {user}")
    table.add_column("Extension", style="bold")
    table.add_column("Language", style="cyan")
    for mapping in mappings:
        table.add_row(f".{mapping.extension}", mapping.language)
    console.print(table)


@mapping_group.command("delete")
@click.argument("user")
@click.argument("extension")
@click.option("--db", default=None, help="Database path")
def mapping_delete(user, extension, db) -> None:
    """Delete the mapping of .EXTENSION."""
    deleted = _with_engine(db, lambda e: e.delete_language_mapping(user, extension))
    if not deleted:
        console.print(f"[yellow]No mapping for {extension!r}.[/]")
        return
    console.print(f"[green]✓[/] Mapping for [bold]{extension}[/] deleted")
