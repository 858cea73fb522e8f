"""
CODETIME — Summary Cache.

Bounded in-memory LRU with time-to-live for composed Summaries, keyed by
``(user_id, from_ms, to_ms, filters_key)``. Writes that change a user's
history call :meth:`SummaryCache.invalidate_user`.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, Optional, TypeVar

from codetime import config

T = TypeVar("T")

logger = logging.getLogger("codetime.cache")


class TTLCache(Generic[T]):
    """
    LRU cache with per-entry expiry.

    Entries older than their TTL are dropped on access; the least recently
    used entry is evicted once ``max_size`` is exceeded.
    """

    def __init__(self, name: str, max_size: int = 1000, ttl_seconds: float = 300.0):
        self.name = name
        self.entries: OrderedDict[Hashable, tuple[float, T]] = OrderedDict()
        self.max_size = max_size
        self.ttl = ttl_seconds
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self.entries)

    async def get(self, key: Hashable) -> Optional[T]:
        entry = self.entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        expiry, value = entry
        if time.monotonic() > expiry:
            del self.entries[key]
            self.misses += 1
            return None
        self.entries.move_to_end(key)
        self.hits += 1
        return value

    async def set(self, key: Hashable, value: T, ttl: Optional[float] = None) -> None:
        expiry = time.monotonic() + (ttl if ttl is not None else self.ttl)
        self.entries[key] = (expiry, value)
        self.entries.move_to_end(key)

        while len(self.entries) > self.max_size:
            self.entries.popitem(last=False)

    async def invalidate(self, predicate: Callable[[Hashable], bool]) -> int:
        """Drop every entry whose key satisfies ``predicate``."""
        stale = [k for k in self.entries if predicate(k)]
        for k in stale:
            del self.entries[k]
        return len(stale)

    async def clear(self) -> None:
        self.entries.clear()


class SummaryCache(TTLCache):
    """TTL cache of composed Summaries.

    Every invalidation bumps a generation counter. A reader captures
    :meth:`generation` before loading anything and stores its result with
    :meth:`set_if_current`, so a Summary computed from rules or rows that
    changed mid-read is never cached.
    """

    def __init__(self, max_size: Optional[int] = None, ttl_seconds: Optional[float] = None):
        super().__init__(
            "summaries",
            max_size=max_size if max_size is not None else config.SUMMARY_CACHE_SIZE,
            ttl_seconds=ttl_seconds if ttl_seconds is not None else config.SUMMARY_CACHE_TTL,
        )
        self._epoch = 0
        self._generations: dict[str, int] = {}

    def generation(self, user_id: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(user_id, 0)

    async def set_if_current(self, key: tuple, value, generation: tuple[int, int]) -> bool:
        """Cache ``value`` unless the user was invalidated since ``generation``."""
        if self.generation(key[0]) != generation:
            logger.debug("Not caching stale summary of %s", key[0])
            return False
        await self.set(key, value)
        return True

    async def invalidate_user(self, user_id: str) -> int:
        self._generations[user_id] = self._generations.get(user_id, 0) + 1
        dropped = await self.invalidate(lambda key: key[0] == user_id)
        if dropped:
            logger.debug("Invalidated %d cached summaries of %s", dropped, user_id)
        return dropped

    async def clear(self) -> None:
        self._epoch += 1
        await super().clear()
