"""
CODETIME Engine — composite orchestrator.

Wires the connection pool, stores, cache, tracker, retrieval path and
aggregation scheduler together, and is the settings boundary: every
rule change is validated here and invalidates the user's cached
Summaries.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from codetime import config
from codetime.aggregation import AggregationReport, AggregationScheduler
from codetime.cache import SummaryCache
from codetime.connection_pool import ConnectionPool
from codetime.exceptions import InvalidRuleError, UserNotFound
from codetime.migrations import run_migrations
from codetime.schema import get_init_meta
from codetime.storage import (
    AliasStore,
    HeartbeatStore,
    LanguageMappingStore,
    SummaryStore,
    UserStore,
)
from codetime.temporal import get_zone, now_utc
from codetime.timing.aliases import validate_alias
from codetime.timing.builder import SummaryBuilder
from codetime.timing.languages import validate_mapping
from codetime.timing.models import (
    ORIGIN_CLIENT,
    Alias,
    Filters,
    LanguageMapping,
    Summary,
    SummaryType,
)
from codetime.timing.retrieval import SummaryRetriever
from codetime.timing.tracker import HeartbeatInput, HeartbeatTracker, IngestResult

logger = logging.getLogger("codetime")


class CodetimeEngine:
    """Coding-time engine over one SQLite database.

    Usage:
        async with CodetimeEngine("~/.codetime/codetime.db") as engine:
            await engine.ingest("alice", [{"time": 1700000000, "project": "wakapi"}])
            summary = await engine.get_summary("alice", start, end)
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        pool_size: Optional[int] = None,
        builder: Optional[SummaryBuilder] = None,
        cache: Optional[SummaryCache] = None,
        **scheduler_options: Any,
    ):
        self._db_path = Path(db_path or config.DB_PATH).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self.pool = ConnectionPool(
            str(self._db_path), max_connections=pool_size or config.POOL_SIZE
        )
        self._initialized = False

        # Composition layers
        self.heartbeats = HeartbeatStore(self.pool)
        self.summaries = SummaryStore(self.pool)
        self.users = UserStore(self.pool)
        self.aliases = AliasStore(self.pool)
        self.mappings = LanguageMappingStore(self.pool)
        self.cache = cache or SummaryCache()
        self.builder = builder or SummaryBuilder()
        self.tracker = HeartbeatTracker(self.heartbeats, self.users, self.mappings)
        self.retriever = SummaryRetriever(
            self.heartbeats, self.summaries, self.aliases, self.mappings,
            self.cache, self.builder, clock=scheduler_options.get("clock", now_utc),
        )
        self.scheduler = AggregationScheduler(
            self.heartbeats, self.summaries, self.users, self.aliases, self.mappings,
            self.cache, self.builder, **scheduler_options,
        )

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ─── Lifecycle ────────────────────────────────────────────────

    async def init_db(self) -> None:
        """Initialize the schema and run migrations. Safe to call repeatedly."""
        if self._initialized:
            return
        await self.pool.initialize()
        async with self.pool.acquire() as conn:
            await run_migrations(conn)
            await conn.executemany(
                "INSERT OR IGNORE INTO codetime_meta (key, value) VALUES (?, ?)",
                get_init_meta(),
            )
        self._initialized = True
        logger.info("CODETIME database initialized at %s", self._db_path)

    async def close(self) -> None:
        await self.scheduler.stop()
        await self.pool.close()
        self._initialized = False

    async def __aenter__(self) -> "CodetimeEngine":
        await self.init_db()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # ─── Ingestion ────────────────────────────────────────────────

    async def ingest(
        self,
        user_id: str,
        heartbeats: Iterable[HeartbeatInput],
        user_agent: Optional[str] = None,
        origin: str = ORIGIN_CLIENT,
    ) -> IngestResult:
        return await self.tracker.ingest_batch(user_id, heartbeats, user_agent, origin)

    # ─── Summaries ────────────────────────────────────────────────

    async def get_summary(
        self,
        user_id: str,
        from_time: datetime,
        to_time: datetime,
        filters: Optional[Filters] = None,
    ) -> Summary:
        return await self.retriever.get_summary(user_id, from_time, to_time, filters)

    async def run_aggregation(self) -> AggregationReport:
        return await self.scheduler.run_once()

    async def regenerate_summaries(self, user_id: str) -> int:
        """Rebuild all persisted Summaries of a user; raises RegenerationError."""
        return await self.scheduler.regenerate(user_id)

    def schedule_regeneration(self, user_id: str) -> asyncio.Task:
        """Start regeneration in the background; the caller does not wait."""
        return self.scheduler.schedule_regeneration(user_id)

    async def prune_heartbeats(self, retention_days: Optional[int] = None) -> int:
        return await self.scheduler.prune(retention_days)

    # ─── Language back-fill ───────────────────────────────────────

    async def backfill_language(self, mapping: LanguageMapping) -> int:
        """Apply ``mapping`` to the user's stored heartbeats lacking a language.

        Rerunnable: rows that already carry a language are never touched.
        """
        mapping = validate_mapping(mapping)
        affected = await self.heartbeats.backfill_language(
            mapping.extension, mapping.language, mapping.user_id
        )
        await self.cache.invalidate_user(mapping.user_id)
        logger.info(
            "Back-filled %d heartbeat(s) of %s: .%s → %s",
            affected, mapping.user_id, mapping.extension, mapping.language,
        )
        return affected

    async def backfill_custom_languages(self) -> int:
        """Apply the server-wide custom languages to every user's heartbeats."""
        total = 0
        for extension, language in config.CUSTOM_LANGUAGES.items():
            total += await self.heartbeats.backfill_language(extension, language)
        if total:
            await self.cache.clear()
            logger.info("Back-filled %d heartbeat(s) from custom languages", total)
        return total

    # ─── Settings boundary ────────────────────────────────────────

    async def list_aliases(self, user_id: str) -> list[Alias]:
        return await self.aliases.list_by_user(user_id)

    async def add_alias(
        self, user_id: str, summary_type: SummaryType | int | str, key: str, value: str
    ) -> Alias:
        """Map raw key ``value`` onto canonical ``key``.

        Raises:
            InvalidRuleError: If the rule is malformed.
        """
        try:
            summary_type = SummaryType.parse(summary_type)
        except ValueError as e:
            raise InvalidRuleError(str(e)) from e
        existing = await self.aliases.list_by_user(user_id)
        alias = validate_alias(Alias(user_id, summary_type, key or "", value or ""), existing)
        alias_id = await self.aliases.upsert(alias)
        await self.users.ensure([user_id])
        await self.cache.invalidate_user(user_id)
        return Alias(alias.user_id, alias.type, alias.key, alias.value, id=alias_id)

    async def delete_alias(
        self, user_id: str, summary_type: SummaryType | int | str, value: str
    ) -> int:
        try:
            summary_type = SummaryType.parse(summary_type)
        except ValueError as e:
            raise InvalidRuleError(str(e)) from e
        deleted = await self.aliases.delete(user_id, summary_type, value)
        await self.cache.invalidate_user(user_id)
        return deleted

    async def list_language_mappings(self, user_id: str) -> list[LanguageMapping]:
        return await self.mappings.list_by_user(user_id)

    async def add_language_mapping(
        self, user_id: str, extension: str, language: str, backfill: bool = False
    ) -> LanguageMapping:
        """Store a user mapping; ``backfill`` also applies it to stored heartbeats.

        Raises:
            InvalidRuleError: If the extension or language is unusable.
        """
        mapping = validate_mapping(LanguageMapping(user_id, extension or "", language or ""))
        mapping_id = await self.mappings.upsert(mapping)
        await self.users.ensure([user_id])
        await self.cache.invalidate_user(user_id)
        if backfill:
            await self.backfill_language(mapping)
        return LanguageMapping(mapping.user_id, mapping.extension, mapping.language, id=mapping_id)

    async def delete_language_mapping(self, user_id: str, extension: str) -> int:
        deleted = await self.mappings.delete(user_id, extension.strip().lstrip(".").lower())
        await self.cache.invalidate_user(user_id)
        return deleted

    async def set_timezone(self, user_id: str, tz_name: str) -> None:
        """Change the calendar used for a user's daily Summaries.

        Persisted days of the old calendar overlap the new one, so a real
        change regenerates the user's Summaries before returning.

        Raises:
            InvalidRuleError: If ``tz_name`` is not a known IANA zone.
            RegenerationError: If rebuilding the Summaries fails.
        """
        if get_zone(tz_name).key != tz_name:
            raise InvalidRuleError(f"Unknown timezone: {tz_name!r}")
        previous = await self.users.timezone(user_id) or config.DEFAULT_TIMEZONE
        await self.users.set_timezone(user_id, tz_name)
        await self.cache.invalidate_user(user_id)
        if previous != tz_name:
            days = await self.scheduler.regenerate(user_id)
            logger.info("Timezone of %s set to %s, %d day(s) rebuilt", user_id, tz_name, days)

    async def delete_user(self, user_id: str) -> None:
        """Delete a user with all heartbeats, rules and Summaries.

        Raises:
            UserNotFound: If nothing is stored for ``user_id``.
        """
        if not await self.users.exists(user_id) and not await self.heartbeats.count(user_id):
            raise UserNotFound(f"User {user_id!r} not found")
        async with self.scheduler.user_lock(user_id):
            await self.summaries.delete_by_user(user_id)
            await self.heartbeats.delete_by_user(user_id)
            await self.aliases.delete_by_user(user_id)
            await self.mappings.delete_by_user(user_id)
            await self.users.delete(user_id)
        await self.cache.invalidate_user(user_id)
        logger.info("Deleted user %s", user_id)

    # ─── Stats ────────────────────────────────────────────────────

    async def stats(self, user_id: Optional[str] = None) -> dict:
        return {
            "heartbeats": await self.heartbeats.count(user_id),
            "users": len(await self.users.list_ids()),
            "cached_summaries": len(self.cache),
            "scheduler_state": self.scheduler.state.value,
        }
