"""
CODETIME — SQLite Schema Definitions.

All tables and indexes for heartbeats, user rules, persisted daily
summaries and the per-user aggregation watermark.
"""

SCHEMA_VERSION = "1.0.0"

# ─── Users ───────────────────────────────────────────────────────────
CREATE_USERS = """
CREATE TABLE IF NOT EXISTS users (
    id          TEXT PRIMARY KEY,
    timezone    TEXT,
    created_at  TEXT NOT NULL DEFAULT (datetime('now'))
);
"""

# ─── Heartbeats (activity pulses, append-only) ───────────────────────
CREATE_HEARTBEATS = """
CREATE TABLE IF NOT EXISTS heartbeats (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id             TEXT NOT NULL,
    time                INTEGER NOT NULL,
    entity              TEXT NOT NULL DEFAULT '',
    type                TEXT NOT NULL DEFAULT 'file',
    category            TEXT NOT NULL DEFAULT '',
    project             TEXT NOT NULL DEFAULT '',
    branch              TEXT NOT NULL DEFAULT '',
    language            TEXT NOT NULL DEFAULT '',
    editor              TEXT NOT NULL DEFAULT '',
    operating_system    TEXT NOT NULL DEFAULT '',
    machine             TEXT NOT NULL DEFAULT '',
    is_write            INTEGER NOT NULL DEFAULT 0,
    origin              TEXT NOT NULL DEFAULT '',
    hash                TEXT NOT NULL UNIQUE,
    created_at          TEXT NOT NULL DEFAULT (datetime('now'))
);
"""

CREATE_HEARTBEATS_INDEX = """
CREATE INDEX IF NOT EXISTS idx_hb_user_time ON heartbeats(user_id, time);
CREATE INDEX IF NOT EXISTS idx_hb_time ON heartbeats(time);
"""

# ─── User Rules ──────────────────────────────────────────────────────
CREATE_ALIASES = """
CREATE TABLE IF NOT EXISTS aliases (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     TEXT NOT NULL,
    type        INTEGER NOT NULL,
    key         TEXT NOT NULL,
    value       TEXT NOT NULL,
    UNIQUE (user_id, type, value)
);
"""

CREATE_LANGUAGE_MAPPINGS = """
CREATE TABLE IF NOT EXISTS language_mappings (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     TEXT NOT NULL,
    extension   TEXT NOT NULL,
    language    TEXT NOT NULL,
    UNIQUE (user_id, extension)
);
"""

# ─── Persisted Daily Summaries ───────────────────────────────────────
CREATE_SUMMARIES = """
CREATE TABLE IF NOT EXISTS summaries (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id         TEXT NOT NULL,
    day             TEXT NOT NULL,
    from_time       INTEGER NOT NULL,
    to_time         INTEGER NOT NULL,
    total_seconds   INTEGER NOT NULL DEFAULT 0,
    raw_pruned      INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE (user_id, day)
);
"""

CREATE_SUMMARY_ITEMS = """
CREATE TABLE IF NOT EXISTS summary_items (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    summary_id      INTEGER NOT NULL REFERENCES summaries(id) ON DELETE CASCADE,
    type            INTEGER NOT NULL,
    key             TEXT NOT NULL,
    total_seconds   INTEGER NOT NULL
);
"""

CREATE_SUMMARIES_INDEX = """
CREATE INDEX IF NOT EXISTS idx_summaries_user_from ON summaries(user_id, from_time);
CREATE INDEX IF NOT EXISTS idx_summary_items_summary ON summary_items(summary_id);
"""

# ─── Aggregation Watermark ───────────────────────────────────────────
CREATE_AGGREGATION_STATE = """
CREATE TABLE IF NOT EXISTS aggregation_state (
    user_id             TEXT PRIMARY KEY,
    last_aggregated_at  INTEGER NOT NULL,
    updated_at          TEXT NOT NULL DEFAULT (datetime('now'))
);
"""

# ─── Metadata Table ──────────────────────────────────────────────────
CREATE_META = """
CREATE TABLE IF NOT EXISTS codetime_meta (
    key     TEXT PRIMARY KEY,
    value   TEXT NOT NULL
);
"""

ALL_SCHEMA = [
    CREATE_USERS,
    CREATE_HEARTBEATS,
    CREATE_HEARTBEATS_INDEX,
    CREATE_ALIASES,
    CREATE_LANGUAGE_MAPPINGS,
    CREATE_SUMMARIES,
    CREATE_SUMMARY_ITEMS,
    CREATE_SUMMARIES_INDEX,
    CREATE_AGGREGATION_STATE,
    CREATE_META,
]


def get_init_meta() -> list[tuple[str, str]]:
    """Return initial metadata key-value pairs."""
    return [
        ("schema_version", SCHEMA_VERSION),
        ("engine", "codetime"),
        ("created_by", "codetime-init"),
    ]
