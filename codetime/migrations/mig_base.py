import logging
import sqlite3

logger = logging.getLogger("codetime")


def _migration_001_enable_wal(conn: sqlite3.Connection):
    """Enable WAL mode so readers never observe a half-written summary."""
    conn.execute("PRAGMA journal_mode=WAL")
    logger.info("Migration 001: Enabled WAL journal mode")


def _migration_002_rule_indexes(conn: sqlite3.Connection):
    """Add lookup indexes for per-user rules."""
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_aliases_user ON aliases(user_id, type)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_mappings_user ON language_mappings(user_id)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_hb_user_origin ON heartbeats(user_id, origin, time)"
    )
    logger.info("Migration 002: Added rule and origin indexes")


def _migration_003_add_astro_language(conn: sqlite3.Connection):
    """Back-fill Astro for heartbeats recorded before the extension was known."""
    cursor = conn.execute(
        "UPDATE heartbeats SET language = 'Astro' "
        "WHERE language = '' AND entity LIKE '%.astro'"
    )
    if cursor.rowcount:
        logger.info("Migration 003: Back-filled %d Astro heartbeats", cursor.rowcount)


def _migration_004_add_raw_pruned(conn: sqlite3.Connection):
    """Mark persisted days whose raw heartbeats were deleted by retention."""
    columns = {
        row[1] for row in conn.execute("PRAGMA table_info(summaries)").fetchall()
    }
    if "raw_pruned" not in columns:
        conn.execute(
            "ALTER TABLE summaries ADD COLUMN raw_pruned INTEGER NOT NULL DEFAULT 0"
        )
        logger.info("Migration 004: Added 'raw_pruned' column to summaries")
