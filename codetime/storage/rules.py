"""
CODETIME — Alias and Language Mapping Stores.

Read contracts (``list_by_user``) feed the aggregation core; the write
methods are only reached through the engine's settings boundary.
"""

from __future__ import annotations

from typing import Optional

from codetime.connection_pool import ConnectionPool
from codetime.storage.base import store_errors
from codetime.timing.models import Alias, LanguageMapping, SummaryType


class AliasStore:
    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    async def list_by_user(self, user_id: str) -> list[Alias]:
        with store_errors("aliases.list_by_user"):
            async with self._pool.acquire() as conn:
                cursor = await conn.execute(
                    "SELECT id, user_id, type, key, value FROM aliases "
                    "WHERE user_id = ? ORDER BY type, key, value",
                    (user_id,),
                )
                rows = await cursor.fetchall()
        return [
            Alias(id=r[0], user_id=r[1], type=SummaryType(r[2]), key=r[3], value=r[4])
            for r in rows
        ]

    async def upsert(self, alias: Alias) -> int:
        """Store ``alias``, repointing an existing rule for the same raw key."""
        with store_errors("aliases.upsert"):
            async with self._pool.transaction() as conn:
                await conn.execute(
                    "INSERT INTO aliases (user_id, type, key, value) VALUES (?, ?, ?, ?) "
                    "ON CONFLICT(user_id, type, value) DO UPDATE SET key = excluded.key",
                    (alias.user_id, int(alias.type), alias.key, alias.value),
                )
                cursor = await conn.execute(
                    "SELECT id FROM aliases WHERE user_id = ? AND type = ? AND value = ?",
                    (alias.user_id, int(alias.type), alias.value),
                )
                row = await cursor.fetchone()
        return row[0]

    async def delete(
        self, user_id: str, summary_type: SummaryType, value: str, key: Optional[str] = None
    ) -> int:
        """Delete the rule for raw key ``value``; ``key`` narrows to one target."""
        with store_errors("aliases.delete"):
            async with self._pool.transaction() as conn:
                cursor = await conn.execute(
                    "DELETE FROM aliases WHERE user_id = ? AND type = ? AND value = ? "
                    "AND (? IS NULL OR key = ?)",
                    (user_id, int(summary_type), value, key, key),
                )
                return cursor.rowcount

    async def delete_by_user(self, user_id: str) -> int:
        with store_errors("aliases.delete_by_user"):
            async with self._pool.transaction() as conn:
                cursor = await conn.execute("DELETE FROM aliases WHERE user_id = ?", (user_id,))
                return cursor.rowcount


class LanguageMappingStore:
    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    async def list_by_user(self, user_id: str) -> list[LanguageMapping]:
        with store_errors("language_mappings.list_by_user"):
            async with self._pool.acquire() as conn:
                cursor = await conn.execute(
                    "SELECT id, user_id, extension, language FROM language_mappings "
                    "WHERE user_id = ? ORDER BY extension",
                    (user_id,),
                )
                rows = await cursor.fetchall()
        return [
            LanguageMapping(id=r[0], user_id=r[1], extension=r[2], language=r[3])
            for r in rows
        ]

    async def upsert(self, mapping: LanguageMapping) -> int:
        with store_errors("language_mappings.upsert"):
            async with self._pool.transaction() as conn:
                await conn.execute(
                    "INSERT INTO language_mappings (user_id, extension, language) "
                    "VALUES (?, ?, ?) "
                    "ON CONFLICT(user_id, extension) DO UPDATE SET language = excluded.language",
                    (mapping.user_id, mapping.extension, mapping.language),
                )
                cursor = await conn.execute(
                    "SELECT id FROM language_mappings WHERE user_id = ? AND extension = ?",
                    (mapping.user_id, mapping.extension),
                )
                row = await cursor.fetchone()
        return row[0]

    async def delete(self, user_id: str, extension: str) -> int:
        with store_errors("language_mappings.delete"):
            async with self._pool.transaction() as conn:
                cursor = await conn.execute(
                    "DELETE FROM language_mappings WHERE user_id = ? AND extension = ?",
                    (user_id, extension),
                )
                return cursor.rowcount

    async def delete_by_user(self, user_id: str) -> int:
        with store_errors("language_mappings.delete_by_user"):
            async with self._pool.transaction() as conn:
                cursor = await conn.execute(
                    "DELETE FROM language_mappings WHERE user_id = ?", (user_id,)
                )
                return cursor.rowcount
