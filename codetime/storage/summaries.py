"""
CODETIME — Summary Store.

Persisted daily Summaries, one row per (user, calendar day) plus its
items. An upsert replaces the day's row and items inside a single
transaction, so readers see either the old or the new day, never a mix.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from codetime.connection_pool import ConnectionPool
from codetime.storage.base import store_errors
from codetime.temporal import from_millis, to_millis
from codetime.timing.models import Summary, SummaryItem, SummaryType

logger = logging.getLogger("codetime.storage")


class SummaryStore:
    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    async def upsert_daily(self, user_id: str, day: date, summary: Summary) -> int:
        """Atomically replace the persisted Summary of ``user_id`` for ``day``."""
        with store_errors("summaries.upsert_daily"):
            async with self._pool.transaction() as conn:
                await conn.execute(
                    "DELETE FROM summaries WHERE user_id = ? AND day = ?",
                    (user_id, day.isoformat()),
                )
                cursor = await conn.execute(
                    "INSERT INTO summaries (user_id, day, from_time, to_time, total_seconds) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (
                        user_id,
                        day.isoformat(),
                        to_millis(summary.from_time),
                        to_millis(summary.to_time),
                        summary.total_seconds,
                    ),
                )
                summary_id = cursor.lastrowid
                items = [
                    (summary_id, int(item.type), item.key, item.total_seconds)
                    for item in summary.all_items()
                ]
                if items:
                    await conn.executemany(
                        "INSERT INTO summary_items (summary_id, type, key, total_seconds) "
                        "VALUES (?, ?, ?, ?)",
                        items,
                    )
        logger.debug("Persisted summary %s/%s (%ds)", user_id, day, summary.total_seconds)
        return summary_id

    async def query_range(
        self, user_id: str, from_time: datetime, to_time: datetime
    ) -> list[Summary]:
        """Persisted Summaries lying entirely within ``[from_time, to_time)``."""
        params = (user_id, to_millis(from_time), to_millis(to_time))
        with store_errors("summaries.query_range"):
            async with self._pool.transaction(immediate=False) as conn:
                cursor = await conn.execute(
                    "SELECT id, from_time, to_time, total_seconds FROM summaries "
                    "WHERE user_id = ? AND from_time >= ? AND to_time <= ? "
                    "ORDER BY from_time",
                    params,
                )
                rows = await cursor.fetchall()
                cursor = await conn.execute(
                    "SELECT i.summary_id, i.type, i.key, i.total_seconds "
                    "FROM summary_items i JOIN summaries s ON s.id = i.summary_id "
                    "WHERE s.user_id = ? AND s.from_time >= ? AND s.to_time <= ? "
                    "ORDER BY i.id",
                    params,
                )
                item_rows = await cursor.fetchall()

        summaries: dict[int, Summary] = {
            r[0]: Summary(
                id=r[0],
                user_id=user_id,
                from_time=from_millis(r[1]),
                to_time=from_millis(r[2]),
                total_seconds=r[3],
            )
            for r in rows
        }
        for summary_id, type_, key, total in item_rows:
            summary = summaries.get(summary_id)
            if summary is None:
                continue
            summary_type = SummaryType(type_)
            summary.items_of(summary_type).append(SummaryItem(summary_type, key, total))
        return [s.sorted() for s in summaries.values()]

    async def days(self, user_id: str) -> list[date]:
        """Calendar days with a persisted Summary, oldest first."""
        with store_errors("summaries.days"):
            async with self._pool.acquire() as conn:
                cursor = await conn.execute(
                    "SELECT day FROM summaries WHERE user_id = ? ORDER BY day", (user_id,)
                )
                rows = await cursor.fetchall()
        return [date.fromisoformat(r[0]) for r in rows]

    async def pruned_days(self, user_id: str) -> list[date]:
        """Persisted days whose raw heartbeats were deleted by retention."""
        with store_errors("summaries.pruned_days"):
            async with self._pool.acquire() as conn:
                cursor = await conn.execute(
                    "SELECT day FROM summaries WHERE user_id = ? AND raw_pruned = 1 ORDER BY day",
                    (user_id,),
                )
                rows = await cursor.fetchall()
        return [date.fromisoformat(r[0]) for r in rows]

    async def delete_by_user(self, user_id: str, keep_pruned: bool = False) -> int:
        """Delete a user's persisted days; ``keep_pruned`` spares the days
        that can no longer be rebuilt from raw heartbeats."""
        sql = "DELETE FROM summaries WHERE user_id = ?"
        if keep_pruned:
            sql += " AND raw_pruned = 0"
        with store_errors("summaries.delete_by_user"):
            async with self._pool.transaction() as conn:
                cursor = await conn.execute(sql, (user_id,))
                return cursor.rowcount
