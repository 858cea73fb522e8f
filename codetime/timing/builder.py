"""
CODETIME — Summary Builder.

Builds a Summary from raw heartbeats and merges Summaries of disjoint
ranges. Every category is estimated independently over the timeline of
each of its keys; the grand total is estimated over the whole filtered
timeline and is never derived from the items.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

from codetime import config
from codetime.temporal import ensure_aware
from codetime.timing.aliases import identity_resolver
from codetime.timing.durations import estimate_from_times, to_seconds
from codetime.timing.languages import LanguageMapper
from codetime.timing.models import (
    UNKNOWN_KEY,
    AliasLookup,
    Filters,
    Heartbeat,
    Summary,
    SummaryType,
    sort_items,
)


class SummaryBuilder:
    """Stateless summary construction with a fixed idle threshold."""

    def __init__(
        self,
        timeout: Optional[timedelta] = None,
        epsilon: Optional[timedelta] = None,
    ):
        self.timeout = timeout if timeout is not None else timedelta(seconds=config.HEARTBEAT_TIMEOUT)
        self.epsilon = epsilon if epsilon is not None else timedelta(seconds=config.HEARTBEAT_EPSILON)

    def resolve_keys(
        self,
        heartbeat: Heartbeat,
        resolver: AliasLookup = identity_resolver,
        mapper: Optional[LanguageMapper] = None,
    ) -> dict[SummaryType, str]:
        """Canonical key of ``heartbeat`` for every category."""
        keys: dict[SummaryType, str] = {}
        for summary_type in SummaryType:
            raw = heartbeat.key_for(summary_type)
            if not raw and summary_type is SummaryType.LANGUAGE and mapper is not None:
                raw = mapper.map_entity(heartbeat.entity) or ""
            keys[summary_type] = resolver(summary_type, raw) if raw else UNKNOWN_KEY
        return keys

    def build(
        self,
        user_id: str,
        heartbeats: Iterable[Heartbeat],
        from_time: datetime,
        to_time: datetime,
        filters: Optional[Filters] = None,
        resolver: AliasLookup = identity_resolver,
        mapper: Optional[LanguageMapper] = None,
    ) -> Summary:
        """Summarize ``heartbeats`` within ``[from_time, to_time)``.

        ``filters=None`` keeps everything; a Filters object keeps heartbeats
        matching any of its set fields, so an empty one keeps nothing.
        """
        from_time, to_time = ensure_aware(from_time), ensure_aware(to_time)
        in_range = sorted(
            (hb for hb in heartbeats if from_time <= hb.time < to_time),
            key=lambda hb: hb.time,
        )

        timeline: list[datetime] = []
        per_key: dict[SummaryType, dict[str, list[datetime]]] = {t: {} for t in SummaryType}
        for hb in in_range:
            keys = self.resolve_keys(hb, resolver, mapper)
            if filters is not None and not filters.matches(keys):
                continue
            timeline.append(hb.time)
            for summary_type, key in keys.items():
                per_key[summary_type].setdefault(key, []).append(hb.time)

        summary = Summary(
            user_id=user_id,
            from_time=from_time,
            to_time=to_time,
            total_seconds=to_seconds(estimate_from_times(timeline, self.timeout, self.epsilon)),
        )
        for summary_type, groups in per_key.items():
            totals: dict[str, int] = {}
            for key, times in groups.items():
                seconds = to_seconds(estimate_from_times(times, self.timeout, self.epsilon))
                if seconds > 0 or key == UNKNOWN_KEY:
                    totals[key] = seconds
            summary.set_items(summary_type, sort_items(summary_type, totals))
        return summary


def merge_summaries(a: Summary, b: Summary) -> Summary:
    """Merge two Summaries of the same user covering disjoint ranges.

    Items add by (category, key), unmatched keys are unioned and grand
    totals add. The result spans both ranges.

    Raises:
        ValueError: If the Summaries belong to different users.
    """
    if a.user_id != b.user_id:
        raise ValueError(f"Cannot merge summaries of {a.user_id!r} and {b.user_id!r}")

    merged = Summary(
        user_id=a.user_id,
        from_time=min(a.from_time, b.from_time),
        to_time=max(a.to_time, b.to_time),
        total_seconds=a.total_seconds + b.total_seconds,
    )
    for summary_type in SummaryType:
        totals: dict[str, int] = {}
        for item in (*a.items_of(summary_type), *b.items_of(summary_type)):
            totals[item.key] = totals.get(item.key, 0) + item.total_seconds
        merged.set_items(summary_type, sort_items(summary_type, totals))
    return merged


def merge_all(
    user_id: str,
    summaries: Iterable[Summary],
    from_time: datetime,
    to_time: datetime,
) -> Summary:
    """Fold ``summaries`` into one Summary spanning ``[from_time, to_time)``."""
    result = Summary(user_id=user_id, from_time=from_time, to_time=to_time)
    for summary in summaries:
        result = merge_summaries(result, summary)
    result.from_time, result.to_time = from_time, to_time
    return result
