"""
CODETIME — Schema Migrations Core.
"""

from __future__ import annotations

import logging
import sqlite3

import aiosqlite

from codetime.migrations.registry import MIGRATIONS
from codetime.schema import ALL_SCHEMA

logger = logging.getLogger("codetime")


async def get_current_version(conn: aiosqlite.Connection) -> int:
    """Get the current schema version (0 means fresh DB)."""
    cursor = await conn.execute("SELECT MAX(version) FROM schema_version")
    row = await cursor.fetchone()
    return row[0] if row and row[0] is not None else 0


async def run_migrations(conn: aiosqlite.Connection) -> int:
    """Run all pending migrations.

    Args:
        conn: aiosqlite connection.

    Returns:
        Number of migrations applied.
    """
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER PRIMARY KEY,
            applied_at TEXT DEFAULT (datetime('now')),
            description TEXT
        )
    """)
    await conn.commit()

    current = await get_current_version(conn)

    if current == 0:
        logger.info("Fresh database detected. Applying base schema...")
        for stmt in ALL_SCHEMA:
            await conn.executescript(stmt)
        await conn.commit()

    applied = 0
    for version, description, func in MIGRATIONS:
        if version <= current:
            continue
        logger.info("Applying migration %d: %s", version, description)
        try:
            # Migration functions are plain sqlite3 callables; run them on
            # aiosqlite's worker thread, which owns the underlying connection.
            await conn._execute(func, conn._conn)
        except (sqlite3.Error, OSError) as e:
            logger.error("Migration %d failed: %s. Skipping.", version, e)
            await conn.rollback()
            continue

        await conn.execute(
            "INSERT INTO schema_version (version, description) VALUES (?, ?)",
            (version, description),
        )
        await conn.commit()
        applied += 1

    if applied:
        logger.info(
            "Applied %d migration(s). Schema now at version %d",
            applied,
            await get_current_version(conn),
        )
    return applied
