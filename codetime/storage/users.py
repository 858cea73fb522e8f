"""
CODETIME — User Store.

Users, their calendar timezone, and the persisted aggregation watermark.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from codetime.connection_pool import ConnectionPool
from codetime.storage.base import store_errors
from codetime.temporal import from_millis, to_millis


class UserStore:
    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    async def ensure(self, user_ids: Iterable[str]) -> None:
        """Create missing users without touching existing ones."""
        rows = [(u,) for u in sorted(set(user_ids)) if u]
        if not rows:
            return
        with store_errors("users.ensure"):
            async with self._pool.transaction() as conn:
                await conn.executemany("INSERT OR IGNORE INTO users (id) VALUES (?)", rows)

    async def exists(self, user_id: str) -> bool:
        with store_errors("users.exists"):
            async with self._pool.acquire() as conn:
                cursor = await conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,))
                return await cursor.fetchone() is not None

    async def list_ids(self) -> list[str]:
        with store_errors("users.list_ids"):
            async with self._pool.acquire() as conn:
                cursor = await conn.execute("SELECT id FROM users ORDER BY id")
                rows = await cursor.fetchall()
        return [r[0] for r in rows]

    async def timezone(self, user_id: str) -> Optional[str]:
        with store_errors("users.timezone"):
            async with self._pool.acquire() as conn:
                cursor = await conn.execute("SELECT timezone FROM users WHERE id = ?", (user_id,))
                row = await cursor.fetchone()
        return row[0] if row else None

    async def set_timezone(self, user_id: str, tz_name: Optional[str]) -> None:
        with store_errors("users.set_timezone"):
            async with self._pool.transaction() as conn:
                await conn.execute(
                    "INSERT INTO users (id, timezone) VALUES (?, ?) "
                    "ON CONFLICT(id) DO UPDATE SET timezone = excluded.timezone",
                    (user_id, tz_name),
                )

    async def get_watermark(self, user_id: str) -> Optional[datetime]:
        with store_errors("users.get_watermark"):
            async with self._pool.acquire() as conn:
                cursor = await conn.execute(
                    "SELECT last_aggregated_at FROM aggregation_state WHERE user_id = ?",
                    (user_id,),
                )
                row = await cursor.fetchone()
        return from_millis(row[0]) if row else None

    async def set_watermark(self, user_id: str, watermark: datetime) -> None:
        with store_errors("users.set_watermark"):
            async with self._pool.transaction() as conn:
                await conn.execute(
                    "INSERT INTO aggregation_state (user_id, last_aggregated_at, updated_at) "
                    "VALUES (?, ?, datetime('now')) "
                    "ON CONFLICT(user_id) DO UPDATE SET "
                    "last_aggregated_at = excluded.last_aggregated_at, "
                    "updated_at = excluded.updated_at",
                    (user_id, to_millis(watermark)),
                )

    async def delete_watermark(self, user_id: str) -> None:
        with store_errors("users.delete_watermark"):
            async with self._pool.transaction() as conn:
                await conn.execute("DELETE FROM aggregation_state WHERE user_id = ?", (user_id,))

    async def delete(self, user_id: str) -> int:
        """Remove the user row and watermark. Heartbeats and rules are the
        engine's to delete."""
        with store_errors("users.delete"):
            async with self._pool.transaction() as conn:
                await conn.execute("DELETE FROM aggregation_state WHERE user_id = ?", (user_id,))
                cursor = await conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
                return cursor.rowcount
