"""
CODETIME — Configuration.
Shared settings and paths for the entire codebase.

Every value is read from the environment at import time. ``reload()``
re-reads them, which the test-suite uses after patching ``os.environ``.
"""

import os
from pathlib import Path

# Base Paths
CODETIME_DIR = Path.home() / ".codetime"
DEFAULT_DB_PATH = CODETIME_DIR / "codetime.db"


def _parse_languages(raw: str) -> dict[str, str]:
    """Parse ``ext=Language,ext2=Language2`` into a mapping."""
    languages: dict[str, str] = {}
    for pair in raw.split(","):
        if "=" not in pair:
            continue
        ext, _, lang = pair.partition("=")
        ext = ext.strip().lstrip(".").lower()
        lang = lang.strip()
        if ext and lang:
            languages[ext] = lang
    return languages


def reload() -> None:
    """Re-read all settings from the environment."""
    global DB_PATH, POOL_SIZE, HEARTBEAT_TIMEOUT, HEARTBEAT_EPSILON
    global AGGREGATION_INTERVAL, AGGREGATION_WORKERS
    global SUMMARY_CACHE_TTL, SUMMARY_CACHE_SIZE
    global IMPORT_BATCH_SIZE, RETENTION_DAYS, DEFAULT_TIMEZONE, CUSTOM_LANGUAGES
    global RUN_SCHEDULER

    # Database Configuration
    DB_PATH = os.environ.get("CODETIME_DB", str(DEFAULT_DB_PATH))
    POOL_SIZE = int(os.environ.get("CODETIME_POOL_SIZE", "5"))

    # Duration estimation (seconds)
    HEARTBEAT_TIMEOUT = float(os.environ.get("CODETIME_HEARTBEAT_TIMEOUT", "120"))
    HEARTBEAT_EPSILON = float(os.environ.get("CODETIME_HEARTBEAT_EPSILON", "1"))

    # Aggregation Scheduler
    AGGREGATION_INTERVAL = int(os.environ.get("CODETIME_AGGREGATION_INTERVAL", "3600"))
    AGGREGATION_WORKERS = int(os.environ.get("CODETIME_AGGREGATION_WORKERS", "4"))
    # The API server runs the scheduler in-process unless disabled
    RUN_SCHEDULER = os.environ.get("CODETIME_RUN_SCHEDULER", "1").lower() not in ("0", "false", "no")

    # Summary Cache
    SUMMARY_CACHE_TTL = float(os.environ.get("CODETIME_SUMMARY_CACHE_TTL", "300"))
    SUMMARY_CACHE_SIZE = int(os.environ.get("CODETIME_SUMMARY_CACHE_SIZE", "1000"))

    # Imports & retention
    IMPORT_BATCH_SIZE = int(os.environ.get("CODETIME_IMPORT_BATCH_SIZE", "3000"))
    RETENTION_DAYS = int(os.environ.get("CODETIME_RETENTION_DAYS", "0"))  # 0 = keep forever

    # Users without an explicit timezone aggregate by this zone's calendar days
    DEFAULT_TIMEZONE = os.environ.get("CODETIME_DEFAULT_TIMEZONE", "UTC")

    # Server-wide extension rules, below user rules and above the built-in table
    CUSTOM_LANGUAGES = _parse_languages(os.environ.get("CODETIME_CUSTOM_LANGUAGES", ""))


reload()
