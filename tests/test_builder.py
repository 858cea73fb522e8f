"""
CODETIME — Summary Builder Tests.

Tests for SummaryBuilder.build, merge_summaries and merge_all.
"""

from datetime import datetime, timedelta, timezone

import pytest

from codetime.timing.aliases import AliasResolver
from codetime.timing.builder import SummaryBuilder, merge_all, merge_summaries
from codetime.timing.languages import LanguageMapper
from codetime.timing.models import (
    UNKNOWN_KEY,
    Alias,
    Filters,
    Heartbeat,
    Summary,
    SummaryItem,
    SummaryType,
)

DAY = datetime(2024, 3, 4, tzinfo=timezone.utc)
NEXT_DAY = DAY + timedelta(days=1)


def _hb(offset: float, **fields) -> Heartbeat:
    fields.setdefault("project", "wakapi")
    return Heartbeat(user_id="alice", time=DAY + timedelta(hours=9, seconds=offset), **fields)


def _keys(items: list[SummaryItem]) -> dict[str, int]:
    return {i.key: i.total_seconds for i in items}


@pytest.fixture
def builder():
    return SummaryBuilder(timeout=timedelta(seconds=120), epsilon=timedelta(seconds=1))


class TestBuild:
    def test_single_project(self, builder):
        beats = [_hb(0), _hb(90), _hb(400)]
        summary = builder.build("alice", beats, DAY, NEXT_DAY)
        assert summary.total_seconds == 92
        assert _keys(summary.projects) == {"wakapi": 92}
        assert summary.from_time == DAY
        assert summary.to_time == NEXT_DAY

    def test_empty_range(self, builder):
        summary = builder.build("alice", [], DAY, NEXT_DAY)
        assert summary.total_seconds == 0
        assert list(summary.all_items()) == []

    def test_range_is_half_open(self, builder):
        beats = [_hb(0), _hb(60)]
        summary = builder.build("alice", beats, DAY, beats[1].time)
        assert summary.total_seconds == 1

    def test_missing_keys_go_to_unknown(self, builder):
        summary = builder.build("alice", [_hb(0), _hb(60)], DAY, NEXT_DAY)
        assert _keys(summary.editors) == {UNKNOWN_KEY: 61}
        assert _keys(summary.machines) == {UNKNOWN_KEY: 61}

    def test_each_key_has_its_own_timeline(self, builder):
        beats = [
            _hb(0, project="a"), _hb(60, project="b"),
            _hb(120, project="a"), _hb(180, project="b"),
        ]
        summary = builder.build("alice", beats, DAY, NEXT_DAY)
        assert summary.total_seconds == 181
        assert _keys(summary.projects) == {"a": 121, "b": 121}

    def test_grand_total_is_not_the_sum_of_items(self, builder):
        beats = [
            _hb(0, project="a"), _hb(60, project="b"),
            _hb(120, project="a"), _hb(180, project="b"),
        ]
        summary = builder.build("alice", beats, DAY, NEXT_DAY)
        assert summary.total_time_by(SummaryType.PROJECT) == timedelta(seconds=242)
        assert summary.total == timedelta(seconds=181)

    def test_items_are_sorted(self, builder):
        beats = [_hb(0, project="short"), _hb(1000, project="long"), _hb(1100, project="long")]
        summary = builder.build("alice", beats, DAY, NEXT_DAY)
        assert [i.key for i in summary.projects] == ["long", "short"]

    def test_idempotent(self, builder):
        beats = [_hb(0), _hb(30, language="Go"), _hb(500, editor="vim")]
        assert builder.build("alice", beats, DAY, NEXT_DAY) == builder.build(
            "alice", list(reversed(beats)), DAY, NEXT_DAY
        )

    def test_defaults_come_from_config(self):
        builder = SummaryBuilder()
        assert builder.timeout == timedelta(seconds=120)
        assert builder.epsilon == timedelta(seconds=1)


class TestBuildFilters:
    @pytest.fixture
    def beats(self):
        # T1: project P, 60s + eps. T2: language L in project Q, 120s + eps.
        return [
            _hb(0, project="P", language="X"), _hb(60, project="P", language="X"),
            _hb(3600, project="Q", language="L"), _hb(3720, project="Q", language="L"),
        ]

    def test_none_keeps_everything(self, builder, beats):
        summary = builder.build("alice", beats, DAY, NEXT_DAY, filters=None)
        assert summary.total_seconds == 61 + 121

    def test_single_field(self, builder, beats):
        summary = builder.build("alice", beats, DAY, NEXT_DAY, Filters(project="P"))
        assert summary.total_seconds == 61
        assert _keys(summary.languages) == {"X": 61}

    def test_fields_combine_with_or(self, builder, beats):
        summary = builder.build("alice", beats, DAY, NEXT_DAY, Filters(project="P", language="L"))
        assert summary.total_seconds == 61 + 121
        assert _keys(summary.projects) == {"P": 61, "Q": 121}

    def test_empty_filters_keep_nothing(self, builder, beats):
        summary = builder.build("alice", beats, DAY, NEXT_DAY, Filters())
        assert summary.total_seconds == 0
        assert list(summary.all_items()) == []

    def test_unknown_can_be_filtered(self, builder):
        beats = [_hb(0, machine="box"), _hb(30)]
        summary = builder.build("alice", beats, DAY, NEXT_DAY, Filters(machine=UNKNOWN_KEY))
        assert summary.total_seconds == 1

    def test_filters_match_resolved_keys(self, builder):
        resolver = AliasResolver(
            "alice", [Alias("alice", SummaryType.PROJECT, key="wakapi", value="wakapi-mobile")]
        )
        beats = [_hb(0, project="wakapi-mobile"), _hb(30, project="wakapi-mobile")]
        summary = builder.build(
            "alice", beats, DAY, NEXT_DAY, Filters(project="wakapi"), resolver=resolver
        )
        assert summary.total_seconds == 31


class TestBuildRules:
    def test_aliases_merge_keys(self, builder):
        resolver = AliasResolver(
            "alice", [Alias("alice", SummaryType.PROJECT, key="wakapi", value="wakapi-mobile")]
        )
        beats = [_hb(0), _hb(30, project="wakapi-mobile"), _hb(60)]
        summary = builder.build("alice", beats, DAY, NEXT_DAY, resolver=resolver)
        assert _keys(summary.projects) == {"wakapi": 61}

    def test_language_falls_back_to_mapper(self, builder):
        beats = [_hb(0, entity="cmd/main.go"), _hb(60, entity="cmd/main.go")]
        summary = builder.build("alice", beats, DAY, NEXT_DAY, mapper=LanguageMapper())
        assert _keys(summary.languages) == {"Go": 61}

    def test_reported_language_wins_over_mapper(self, builder):
        beats = [_hb(0, entity="x.go", language="Go Template")]
        summary = builder.build("alice", beats, DAY, NEXT_DAY, mapper=LanguageMapper())
        assert _keys(summary.languages) == {"Go Template": 1}


# ─── Merge ────────────────────────────────────────────────────────────


def _day_summary(offset_days: int, total: int, **items) -> Summary:
    start = DAY + timedelta(days=offset_days)
    summary = Summary("alice", start, start + timedelta(days=1), total_seconds=total)
    for name, entries in items.items():
        t = SummaryType.parse(name)
        summary.set_items(t, [SummaryItem(t, k, s) for k, s in entries])
    return summary


class TestMerge:
    def test_adds_and_unions(self):
        a = _day_summary(0, 100, project=[("wakapi", 100)], language=[("Go", 100)])
        b = _day_summary(1, 50, project=[("wakapi", 30), ("anchr", 20)])
        merged = merge_summaries(a, b)
        assert merged.total_seconds == 150
        assert _keys(merged.projects) == {"wakapi": 130, "anchr": 20}
        assert _keys(merged.languages) == {"Go": 100}
        assert merged.from_time == a.from_time
        assert merged.to_time == b.to_time

    def test_commutative(self):
        a = _day_summary(0, 100, project=[("wakapi", 100)])
        b = _day_summary(1, 50, project=[("anchr", 50)])
        assert merge_summaries(a, b) == merge_summaries(b, a)

    def test_associative(self):
        a = _day_summary(0, 100, project=[("wakapi", 100)])
        b = _day_summary(1, 50, project=[("anchr", 50)])
        c = _day_summary(2, 70, project=[("wakapi", 70)], editor=[("vim", 70)])
        assert merge_summaries(merge_summaries(a, b), c) == merge_summaries(
            a, merge_summaries(b, c)
        )

    def test_rejects_different_users(self):
        a = _day_summary(0, 1)
        b = Summary("bob", a.from_time, a.to_time)
        with pytest.raises(ValueError):
            merge_summaries(a, b)

    def test_merge_all_spans_requested_range(self):
        parts = [_day_summary(1, 10, project=[("x", 10)]), _day_summary(2, 5, project=[("x", 5)])]
        merged = merge_all("alice", parts, DAY, DAY + timedelta(days=7))
        assert merged.from_time == DAY
        assert merged.to_time == DAY + timedelta(days=7)
        assert _keys(merged.projects) == {"x": 15}

    def test_merge_all_of_nothing(self):
        merged = merge_all("alice", [], DAY, NEXT_DAY)
        assert merged.total_seconds == 0
        assert merged.projects == []

    def test_split_build_matches_whole_when_days_are_apart(self, builder):
        beats = [_hb(0), _hb(60), _hb(86400), _hb(86460)]
        whole = builder.build("alice", beats, DAY, DAY + timedelta(days=2))
        split = merge_summaries(
            builder.build("alice", beats, DAY, NEXT_DAY),
            builder.build("alice", beats, NEXT_DAY, DAY + timedelta(days=2)),
        )
        assert split == whole
