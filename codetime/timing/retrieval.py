"""
CODETIME — Summary Retrieval.

Answers range queries by composing persisted daily Summaries with live
builds over whatever part of the range they do not cover (the
unaggregated tail, partial days at the range edges, days the scheduler
has not reached yet). Results go through the :class:`SummaryCache`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from codetime.cache import SummaryCache
from codetime.storage import (
    AliasStore,
    HeartbeatStore,
    LanguageMappingStore,
    SummaryStore,
)
from codetime.temporal import ensure_aware, now_utc, to_millis
from codetime.timing.aliases import AliasResolver
from codetime.timing.builder import SummaryBuilder, merge_all
from codetime.timing.languages import LanguageMapper
from codetime.timing.models import Filters, Summary

logger = logging.getLogger("codetime")

CacheKey = tuple[str, int, int, Optional[tuple[str, ...]]]

# Ranges ending this close to now are still open and get rounded up
OPEN_END_GRANULARITY = timedelta(minutes=1)


def cache_key(
    user_id: str, from_time: datetime, to_time: datetime, filters: Optional[Filters]
) -> CacheKey:
    return (
        user_id,
        to_millis(from_time),
        to_millis(to_time),
        filters.cache_key() if filters is not None else None,
    )


def normalize_range(
    from_time: datetime, to_time: datetime, now: datetime
) -> tuple[datetime, datetime]:
    """UTC bounds of a query, with an open end rounded up to the minute.

    Queries ending at "now" differ by milliseconds on every call; rounding
    their end lets repeated reads share a cache entry. Ends further in the
    past are left exact.
    """
    from_time = ensure_aware(from_time).astimezone(timezone.utc)
    to_time = ensure_aware(to_time).astimezone(timezone.utc)
    if to_time >= now - OPEN_END_GRANULARITY:
        rounded = to_time.replace(second=0, microsecond=0)
        if rounded < to_time:
            rounded += OPEN_END_GRANULARITY
        to_time = rounded
    return from_time, to_time


def uncovered_intervals(
    summaries: list[Summary], from_time: datetime, to_time: datetime
) -> list[tuple[datetime, datetime]]:
    """Parts of ``[from_time, to_time)`` not covered by ``summaries``.

    Adjacent uncovered parts come back as one interval.
    """
    gaps: list[tuple[datetime, datetime]] = []
    cursor = from_time
    for summary in sorted(summaries, key=lambda s: s.from_time):
        if summary.from_time > cursor:
            gaps.append((cursor, summary.from_time))
        cursor = max(cursor, summary.to_time)
    if cursor < to_time:
        gaps.append((cursor, to_time))
    return gaps


class SummaryRetriever:
    """Cached ``get_summary`` over persisted and live data."""

    def __init__(
        self,
        heartbeats: HeartbeatStore,
        summaries: SummaryStore,
        aliases: AliasStore,
        mappings: LanguageMappingStore,
        cache: SummaryCache,
        builder: Optional[SummaryBuilder] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._heartbeats = heartbeats
        self._summaries = summaries
        self._aliases = aliases
        self._mappings = mappings
        self.cache = cache
        self.builder = builder or SummaryBuilder()
        self._clock = clock

    async def resolver_for(self, user_id: str) -> AliasResolver:
        return AliasResolver(user_id, await self._aliases.list_by_user(user_id))

    async def mapper_for(self, user_id: str) -> LanguageMapper:
        return LanguageMapper(await self._mappings.list_by_user(user_id))

    async def get_summary(
        self,
        user_id: str,
        from_time: datetime,
        to_time: datetime,
        filters: Optional[Filters] = None,
        use_cache: bool = True,
    ) -> Summary:
        """Summary of ``user_id`` over ``[from_time, to_time)``.

        An end within a minute of now (or later) is rounded up to the next
        full minute, see :func:`normalize_range`.

        Raises:
            ValueError: If ``from_time`` is after ``to_time``.
        """
        if ensure_aware(from_time) > ensure_aware(to_time):
            raise ValueError("Summary range starts after it ends")
        from_time, to_time = normalize_range(from_time, to_time, self._clock())

        key = cache_key(user_id, from_time, to_time, filters)
        if use_cache:
            cached = await self.cache.get(key)
            if cached is not None:
                return cached
        generation = self.cache.generation(user_id)

        resolver = await self.resolver_for(user_id)
        mapper = await self.mapper_for(user_id)

        if filters is not None:
            heartbeats = await self._heartbeats.query_range(user_id, from_time, to_time)
            summary = self.builder.build(
                user_id, heartbeats, from_time, to_time, filters, resolver, mapper
            )
        else:
            persisted = await self._summaries.query_range(user_id, from_time, to_time)
            parts = list(persisted)
            gaps = uncovered_intervals(persisted, from_time, to_time)
            for gap_from, gap_to in gaps:
                heartbeats = await self._heartbeats.query_range(user_id, gap_from, gap_to)
                parts.append(
                    self.builder.build(
                        user_id, heartbeats, gap_from, gap_to, None, resolver, mapper
                    )
                )
            summary = merge_all(user_id, parts, from_time, to_time).with_resolved_aliases(resolver)
            logger.debug(
                "Composed summary for %s from %d persisted day(s) and %d live interval(s)",
                user_id, len(persisted), len(gaps),
            )

        await self.cache.set_if_current(key, summary, generation)
        return summary
