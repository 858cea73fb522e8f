"""
CODETIME — Heartbeat Store.

Append-only persistence of heartbeats. Duplicate suppression relies on
the unique content hash; the only in-place update is the language
back-fill for rows stored without a language.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from codetime.connection_pool import ConnectionPool
from codetime.storage.base import like_suffix, store_errors
from codetime.temporal import from_millis, to_millis
from codetime.timing.models import Heartbeat

logger = logging.getLogger("codetime.storage")

_COLUMNS = (
    "id, user_id, time, entity, type, category, project, branch, language, "
    "editor, operating_system, machine, is_write, origin"
)

_INSERT = (
    "INSERT OR IGNORE INTO heartbeats "
    "(user_id, time, entity, type, category, project, branch, language, "
    "editor, operating_system, machine, is_write, origin, hash) "
    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
)


def _row_to_heartbeat(row) -> Heartbeat:
    return Heartbeat(
        id=row[0],
        user_id=row[1],
        time=from_millis(row[2]),
        entity=row[3],
        type=row[4],
        category=row[5],
        project=row[6],
        branch=row[7],
        language=row[8],
        editor=row[9],
        operating_system=row[10],
        machine=row[11],
        is_write=bool(row[12]),
        origin=row[13],
    )


def _heartbeat_params(hb: Heartbeat) -> tuple:
    return (
        hb.user_id, to_millis(hb.time), hb.entity, hb.type, hb.category,
        hb.project, hb.branch, hb.language, hb.editor, hb.operating_system,
        hb.machine, 1 if hb.is_write else 0, hb.origin, hb.hashed(),
    )


class HeartbeatStore:
    """Heartbeat persistence on top of a :class:`ConnectionPool`."""

    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    async def insert_batch(self, heartbeats: Iterable[Heartbeat]) -> int:
        """Insert heartbeats in one transaction. Returns rows actually added."""
        params = [_heartbeat_params(hb) for hb in heartbeats]
        if not params:
            return 0
        with store_errors("insert_batch"):
            async with self._pool.transaction() as conn:
                cursor = await conn.executemany(_INSERT, params)
                inserted = max(cursor.rowcount, 0)
        logger.debug("Inserted %d/%d heartbeats", inserted, len(params))
        return inserted

    async def query_range(
        self, user_id: str, from_time: datetime, to_time: datetime
    ) -> list[Heartbeat]:
        """Heartbeats of ``user_id`` in ``[from_time, to_time)``, oldest first."""
        with store_errors("query_range"):
            async with self._pool.acquire() as conn:
                cursor = await conn.execute(
                    f"SELECT {_COLUMNS} FROM heartbeats "
                    "WHERE user_id = ? AND time >= ? AND time < ? ORDER BY time, id",
                    (user_id, to_millis(from_time), to_millis(to_time)),
                )
                rows = await cursor.fetchall()
        return [_row_to_heartbeat(r) for r in rows]

    async def earliest_unaggregated(
        self, user_id: str, watermark: Optional[datetime]
    ) -> Optional[datetime]:
        """Time of the oldest heartbeat at or after ``watermark``."""
        since = to_millis(watermark) if watermark is not None else None
        with store_errors("earliest_unaggregated"):
            async with self._pool.acquire() as conn:
                cursor = await conn.execute(
                    "SELECT MIN(time) FROM heartbeats WHERE user_id = ? "
                    "AND (? IS NULL OR time >= ?)",
                    (user_id, since, since),
                )
                row = await cursor.fetchone()
        return from_millis(row[0]) if row and row[0] is not None else None

    async def users_with_pending(self) -> list[str]:
        """Users holding at least one heartbeat at or after their watermark."""
        with store_errors("users_with_pending"):
            async with self._pool.acquire() as conn:
                cursor = await conn.execute(
                    "SELECT h.user_id FROM heartbeats h "
                    "LEFT JOIN aggregation_state a ON a.user_id = h.user_id "
                    "GROUP BY h.user_id "
                    "HAVING MAX(h.time) >= COALESCE(MAX(a.last_aggregated_at), 0) "
                    "ORDER BY h.user_id"
                )
                rows = await cursor.fetchall()
        return [r[0] for r in rows]

    async def latest_time(self, user_id: str, origin: Optional[str] = None) -> Optional[datetime]:
        """Time of the newest heartbeat, optionally of one origin only."""
        with store_errors("latest_time"):
            async with self._pool.acquire() as conn:
                cursor = await conn.execute(
                    "SELECT MAX(time) FROM heartbeats WHERE user_id = ? "
                    "AND (? IS NULL OR origin = ?)",
                    (user_id, origin, origin),
                )
                row = await cursor.fetchone()
        return from_millis(row[0]) if row and row[0] is not None else None

    async def count(self, user_id: Optional[str] = None) -> int:
        with store_errors("count"):
            async with self._pool.acquire() as conn:
                cursor = await conn.execute(
                    "SELECT COUNT(*) FROM heartbeats WHERE ? IS NULL OR user_id = ?",
                    (user_id, user_id),
                )
                row = await cursor.fetchone()
        return row[0]

    async def delete_before(self, cutoff: datetime, aggregated_only: bool = True) -> int:
        """Delete heartbeats older than ``cutoff``.

        With ``aggregated_only`` only whole persisted days are pruned: a
        day qualifies when it ends at or before both ``cutoff`` and its
        user's watermark. Those days are flagged ``raw_pruned`` in the same
        transaction so that regeneration keeps them instead of rebuilding
        them from nothing.
        """
        with store_errors("delete_before"):
            async with self._pool.transaction() as conn:
                if not aggregated_only:
                    cursor = await conn.execute(
                        "DELETE FROM heartbeats WHERE time < ?", (to_millis(cutoff),)
                    )
                else:
                    await conn.execute(
                        "UPDATE summaries SET raw_pruned = 1 "
                        "WHERE raw_pruned = 0 AND to_time <= ? "
                        "AND to_time <= COALESCE((SELECT last_aggregated_at FROM aggregation_state a"
                        " WHERE a.user_id = summaries.user_id), 0)",
                        (to_millis(cutoff),),
                    )
                    cursor = await conn.execute(
                        "DELETE FROM heartbeats WHERE time < ? AND EXISTS ("
                        "SELECT 1 FROM summaries s WHERE s.user_id = heartbeats.user_id"
                        " AND s.raw_pruned = 1"
                        " AND heartbeats.time >= s.from_time AND heartbeats.time < s.to_time)",
                        (to_millis(cutoff),),
                    )
                deleted = cursor.rowcount
        if deleted:
            logger.info("Deleted %d heartbeats older than %s", deleted, cutoff.isoformat())
        return deleted

    async def delete_by_user(self, user_id: str) -> int:
        with store_errors("delete_by_user"):
            async with self._pool.transaction() as conn:
                cursor = await conn.execute(
                    "DELETE FROM heartbeats WHERE user_id = ?", (user_id,)
                )
                return cursor.rowcount

    async def backfill_language(
        self, extension: str, language: str, user_id: Optional[str] = None
    ) -> int:
        """Set ``language`` on stored heartbeats with an empty language whose
        entity ends in ``.extension``. Rows with a language are left alone,
        so running this twice changes nothing the second time.
        """
        with store_errors("backfill_language"):
            async with self._pool.transaction() as conn:
                cursor = await conn.execute(
                    "UPDATE heartbeats SET language = ? "
                    "WHERE language = '' AND (? IS NULL OR user_id = ?) "
                    "AND entity LIKE ? ESCAPE '\\'",
                    (language, user_id, user_id, like_suffix(extension)),
                )
                return cursor.rowcount
