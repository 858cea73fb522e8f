"""AggregationScheduler — folds closed days of heartbeats into daily Summaries."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from codetime import config
from codetime.aggregation.models import (
    AggregationReport,
    SchedulerState,
    UserAggregationState,
)
from codetime.cache import SummaryCache
from codetime.exceptions import CodetimeError, RegenerationError
from codetime.storage import (
    AliasStore,
    HeartbeatStore,
    LanguageMappingStore,
    SummaryStore,
    UserStore,
)
from codetime.temporal import day_bounds, day_of, day_start, get_zone, iter_days, now_iso, now_utc
from codetime.timing.aliases import AliasResolver
from codetime.timing.builder import SummaryBuilder
from codetime.timing.languages import LanguageMapper

logger = logging.getLogger("codetime.aggregation")


class AggregationScheduler:
    """Periodic per-user aggregation with a persisted watermark.

    Each user's watermark is the start of the first calendar day (in the
    user's timezone) that has not been aggregated. A run builds and
    upserts one Summary per closed day between the oldest heartbeat at or
    after the watermark and the start of today, then moves the watermark
    to the start of today. The watermark only moves when every day
    succeeded, so a failed run is simply repeated by the next one.

    At most one aggregation per user runs at a time: scheduled runs skip
    a busy user, manual regeneration waits for it.

    Usage:
        scheduler = AggregationScheduler(heartbeats, summaries, users, aliases, mappings, cache)
        await scheduler.run_once()   # one pass
        scheduler.start()            # repeat every ``interval`` seconds
        await scheduler.stop()
    """

    def __init__(
        self,
        heartbeats: HeartbeatStore,
        summaries: SummaryStore,
        users: UserStore,
        aliases: AliasStore,
        mappings: LanguageMappingStore,
        cache: SummaryCache,
        builder: Optional[SummaryBuilder] = None,
        interval: Optional[float] = None,
        workers: Optional[int] = None,
        retention_days: Optional[int] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._heartbeats = heartbeats
        self._summaries = summaries
        self._users = users
        self._aliases = aliases
        self._mappings = mappings
        self._cache = cache
        self.builder = builder or SummaryBuilder()
        self.interval = interval if interval is not None else config.AGGREGATION_INTERVAL
        self.workers = max(1, workers if workers is not None else config.AGGREGATION_WORKERS)
        self.retention_days = (
            retention_days if retention_days is not None else config.RETENTION_DAYS
        )
        self._clock = clock

        self.state = SchedulerState.IDLE
        self.last_report: Optional[AggregationReport] = None
        self._user_states: dict[str, UserAggregationState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()

    # ─── Per-user state ───────────────────────────────────────────────

    def user_state(self, user_id: str) -> UserAggregationState:
        if user_id not in self._user_states:
            self._user_states[user_id] = UserAggregationState(user_id)
        return self._user_states[user_id]

    def user_lock(self, user_id: str) -> asyncio.Lock:
        """Lock serializing all aggregation work of one user."""
        if user_id not in self._locks:
            self._locks[user_id] = asyncio.Lock()
        return self._locks[user_id]

    def is_busy(self, user_id: str) -> bool:
        return self.user_lock(user_id).locked()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ─── Aggregation ──────────────────────────────────────────────────

    async def zone_for(self, user_id: str) -> ZoneInfo:
        """Calendar zone of a user, falling back to the configured default."""
        return get_zone(await self._users.timezone(user_id) or config.DEFAULT_TIMEZONE)

    async def _aggregate(self, user_id: str) -> int:
        """Aggregate every closed day since the watermark. Caller holds the lock."""
        tz = await self.zone_for(user_id)
        watermark = await self._users.get_watermark(user_id)
        earliest = await self._heartbeats.earliest_unaggregated(user_id, watermark)
        if earliest is None:
            return 0

        first_day = day_of(earliest, tz)
        today = day_of(self._clock(), tz)
        if first_day >= today:
            return 0

        resolver = AliasResolver(user_id, await self._aliases.list_by_user(user_id))
        mapper = LanguageMapper(await self._mappings.list_by_user(user_id))
        pruned = set(await self._summaries.pruned_days(user_id))

        written = 0
        for day in iter_days(first_day, today):
            if day in pruned:
                logger.warning("Keeping pruned day %s of %s, raw heartbeats are gone", day, user_id)
                continue
            lo, hi = day_bounds(day, tz)
            heartbeats = await self._heartbeats.query_range(user_id, lo, hi)
            if not heartbeats:
                continue
            summary = self.builder.build(user_id, heartbeats, lo, hi, None, resolver, mapper)
            await self._summaries.upsert_daily(user_id, day, summary)
            written += 1

        new_watermark = day_start(today, tz)
        await self._users.set_watermark(user_id, new_watermark)
        self.user_state(user_id).last_aggregated_at = new_watermark
        logger.info(
            "Aggregated %d day(s) for %s up to %s", written, user_id, new_watermark.isoformat()
        )
        return written

    async def aggregate_user(self, user_id: str, wait: bool = False) -> Optional[int]:
        """Aggregate one user.

        Returns the number of days written, or ``None`` when another
        aggregation of the same user is in flight and ``wait`` is false.
        Store failures propagate; the watermark is left where it was.
        """
        lock = self.user_lock(user_id)
        if lock.locked() and not wait:
            logger.debug("Aggregation of %s already in progress, skipping", user_id)
            return None
        async with lock:
            state = self.user_state(user_id)
            state.in_progress = True
            try:
                written = await self._aggregate(user_id)
                state.last_error = ""
                return written
            except (CodetimeError, OSError, ValueError) as e:
                state.last_error = str(e)
                raise
            finally:
                state.in_progress = False

    async def _run_user(self, user_id: str, report: AggregationReport, sem: asyncio.Semaphore) -> None:
        """Aggregate one user inside a run, isolating its failures."""
        async with sem:
            if self._stop.is_set():
                report.skipped += 1
                return
            try:
                written = await self.aggregate_user(user_id)
            except (CodetimeError, OSError, ValueError) as e:
                logger.exception("Aggregation failed for %s: %s", user_id, e)
                report.failed += 1
                report.failures.append(user_id)
                return
            if written is None:
                report.skipped += 1
                return
            if written:
                await self._cache.invalidate_user(user_id)
            report.aggregated += 1
            report.days_written += written

    async def run_once(self) -> AggregationReport:
        """One pass over every user with heartbeats at or after their watermark."""
        report = AggregationReport(started_at=now_iso())
        self.state = SchedulerState.SCANNING
        try:
            users = await self._heartbeats.users_with_pending()
            report.users_scanned = len(users)

            self.state = SchedulerState.AGGREGATING
            sem = asyncio.Semaphore(self.workers)
            await asyncio.gather(*(self._run_user(u, report, sem) for u in users))

            if self.retention_days > 0 and not self._stop.is_set():
                report.pruned = await self.prune()
        except CodetimeError as e:
            logger.exception("Aggregation run aborted: %s", e)
            report.failed += 1
        finally:
            self.state = SchedulerState.IDLE
            report.finished_at = now_iso()
            self.last_report = report

        logger.info(
            "Aggregation run: %d scanned, %d aggregated, %d failed, %d skipped, %d day(s)",
            report.users_scanned, report.aggregated, report.failed,
            report.skipped, report.days_written,
        )
        return report

    async def prune(self, retention_days: Optional[int] = None) -> int:
        """Delete aggregated raw heartbeats older than the retention window."""
        days = retention_days if retention_days is not None else self.retention_days
        if days <= 0:
            return 0
        cutoff = self._clock() - timedelta(days=days)
        return await self._heartbeats.delete_before(cutoff, aggregated_only=True)

    # ─── Regeneration ─────────────────────────────────────────────────

    async def regenerate(self, user_id: str) -> int:
        """Delete and rebuild the persisted Summaries of ``user_id``.

        Days flagged ``raw_pruned`` by retention are kept as they are,
        their heartbeats no longer exist. Waits for an in-flight aggregation of the same user first.

        Raises:
            RegenerationError: If any step fails.
        """
        lock = self.user_lock(user_id)
        async with lock:
            state = self.user_state(user_id)
            state.in_progress = True
            try:
                deleted = await self._summaries.delete_by_user(user_id, keep_pruned=True)
                await self._users.delete_watermark(user_id)
                state.last_aggregated_at = None
                logger.info("Regenerating summaries of %s (%d deleted)", user_id, deleted)
                written = await self._aggregate(user_id)
                state.last_error = ""
            except (CodetimeError, OSError, ValueError) as e:
                state.last_error = str(e)
                raise RegenerationError(f"Failed to regenerate summaries of {user_id}: {e}") from e
            finally:
                state.in_progress = False
                await self._cache.invalidate_user(user_id)
        return written

    def schedule_regeneration(self, user_id: str) -> asyncio.Task:
        """Start :meth:`regenerate` in the background and return its task."""
        task = asyncio.create_task(self.regenerate(user_id), name=f"regenerate:{user_id}")
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("%s failed: %s", task.get_name(), exc)

    # ─── Loop ─────────────────────────────────────────────────────────

    def start(self) -> asyncio.Task:
        """Start the periodic loop in the running event loop."""
        if self.running:
            return self._task
        self._stop.clear()
        self._task = asyncio.create_task(self._loop(), name="aggregation-scheduler")
        return self._task

    async def _loop(self) -> None:
        logger.info("Aggregation scheduler starting (interval=%ss)", self.interval)
        try:
            while not self._stop.is_set():
                await self.run_once()
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            logger.info("Aggregation scheduler stopped")

    async def stop(self, timeout: float = 30.0) -> None:
        """Signal the loop to stop and wait for the current run to drain."""
        self._stop.set()
        if self._task is not None:
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Aggregation run did not drain in %.0fs, cancelling", timeout)
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            self._task = None
        if self._background:
            await asyncio.wait(set(self._background), timeout=timeout)
