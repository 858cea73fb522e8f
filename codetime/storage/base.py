"""Shared helpers for the SQLite stores."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator

from codetime.exceptions import StoreError

logger = logging.getLogger("codetime.storage")


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Re-raise ``sqlite3.Error`` as :class:`StoreError`."""
    try:
        yield
    except sqlite3.Error as e:
        logger.error("Store operation %s failed: %s", operation, e)
        raise StoreError(f"{operation} failed: {e}") from e


def like_suffix(extension: str) -> str:
    """LIKE pattern matching entities that end in ``.extension``."""
    escaped = extension.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%.{escaped}"
