"""
CODETIME — Engine Tests.

Range retrieval over persisted and live data, caching, and the settings
boundary (aliases, language mappings, timezones, user deletion).
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from codetime import config
from codetime.engine import CodetimeEngine
from codetime.exceptions import InvalidRuleError, UserNotFound
from codetime.timing.models import Filters, LanguageMapping, Summary, SummaryType
from codetime.timing.retrieval import normalize_range, uncovered_intervals

MAR_8 = datetime(2024, 3, 8, tzinfo=timezone.utc)
MAR_9 = datetime(2024, 3, 9, tzinfo=timezone.utc)
TODAY = datetime(2024, 3, 10, tzinfo=timezone.utc)
NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


def _beats(start: datetime, *offsets: float, **fields) -> list[dict]:
    return [{"time": (start + timedelta(seconds=s)).timestamp(), **fields} for s in offsets]


def _projects(summary) -> dict[str, int]:
    return {i.key: i.total_seconds for i in summary.projects}


@pytest.fixture
async def wakapi(engine):
    """alice on Mar 8: wakapi 121s at 09:00, wakapi-mobile 61s at 14:00."""
    await engine.ingest("alice", _beats(MAR_8 + timedelta(hours=9), 0, 60, 120, project="wakapi"))
    await engine.ingest(
        "alice", _beats(MAR_8 + timedelta(hours=14), 0, 60, project="wakapi-mobile")
    )
    return engine


# ─── Retrieval ────────────────────────────────────────────────────────


class TestGetSummary:
    async def test_live_summary(self, wakapi):
        summary = await wakapi.get_summary("alice", MAR_8, MAR_9)
        assert summary.total_seconds == 182
        assert _projects(summary) == {"wakapi": 121, "wakapi-mobile": 61}
        assert summary.from_time == MAR_8
        assert summary.to_time == MAR_9

    async def test_persisted_and_tail_compose_to_live(self, wakapi):
        await wakapi.ingest("alice", _beats(TODAY + timedelta(hours=11), 0, 60, project="wakapi"))
        live = await wakapi.get_summary("alice", MAR_8, NOW)

        report = await wakapi.run_aggregation()
        assert report.days_written == 1
        composed = await wakapi.get_summary("alice", MAR_8, NOW)

        assert composed is not live
        assert composed == live
        assert composed.total_seconds == 182 + 61
        assert _projects(composed) == {"wakapi": 182, "wakapi-mobile": 61}

    async def test_partial_days_are_built_live(self, wakapi):
        await wakapi.run_aggregation()
        summary = await wakapi.get_summary("alice", MAR_8 + timedelta(hours=12), MAR_9)
        assert _projects(summary) == {"wakapi-mobile": 61}

    async def test_unknown_user_is_empty(self, engine):
        summary = await engine.get_summary("nobody", MAR_8, MAR_9)
        assert summary.total_seconds == 0
        assert list(summary.all_items()) == []

    async def test_empty_range(self, wakapi):
        summary = await wakapi.get_summary("alice", MAR_8, MAR_8)
        assert summary.total_seconds == 0

    async def test_inverted_range(self, engine):
        with pytest.raises(ValueError):
            await engine.get_summary("alice", MAR_9, MAR_8)

    async def test_filters_combine_with_or(self, engine):
        await engine.ingest("alice", _beats(MAR_8, 0, 60, project="P", language="Python"))
        await engine.ingest("alice", _beats(MAR_8 + timedelta(hours=3), 0, 120, project="Q", language="Go"))
        await engine.run_aggregation()

        both = await engine.get_summary("alice", MAR_8, MAR_9, Filters(project="P", language="Go"))
        assert both.total_seconds == 61 + 121
        only_p = await engine.get_summary("alice", MAR_8, MAR_9, Filters(project="P"))
        assert only_p.total_seconds == 61
        nothing = await engine.get_summary("alice", MAR_8, MAR_9, Filters())
        assert nothing.total_seconds == 0
        everything = await engine.get_summary("alice", MAR_8, MAR_9)
        assert everything.total_seconds == 61 + 121


class TestCaching:
    async def test_repeated_query_hits_cache(self, wakapi):
        first = await wakapi.get_summary("alice", MAR_8, MAR_9)
        assert await wakapi.get_summary("alice", MAR_8, MAR_9) is first
        assert wakapi.cache.hits == 1

    async def test_filters_are_part_of_the_key(self, wakapi):
        unfiltered = await wakapi.get_summary("alice", MAR_8, MAR_9)
        filtered = await wakapi.get_summary("alice", MAR_8, MAR_9, Filters(project="wakapi"))
        assert filtered.total_seconds == 121
        assert unfiltered.total_seconds == 182

    async def test_rule_changes_invalidate(self, wakapi):
        first = await wakapi.get_summary("alice", MAR_8, MAR_9)
        await wakapi.add_alias("alice", "project", "wakapi", "wakapi-mobile")
        assert await wakapi.get_summary("alice", MAR_8, MAR_9) is not first

    async def test_other_users_stay_cached(self, wakapi):
        await wakapi.ingest("bob", _beats(MAR_8, 0))
        bob = await wakapi.get_summary("bob", MAR_8, MAR_9)
        await wakapi.add_alias("alice", "project", "wakapi", "wakapi-mobile")
        assert await wakapi.get_summary("bob", MAR_8, MAR_9) is bob

    async def test_read_racing_a_rule_change_is_not_cached(self, wakapi, monkeypatch):
        original = wakapi.aliases.list_by_user
        calls = []

        async def change_rules_mid_read(user_id):
            calls.append(user_id)
            aliases = await original(user_id)
            if len(calls) == 1:
                await wakapi.add_alias("alice", "project", "wakapi", "wakapi-mobile")
            return aliases

        monkeypatch.setattr(wakapi.aliases, "list_by_user", change_rules_mid_read)
        stale = await wakapi.get_summary("alice", MAR_8, MAR_9)
        assert _projects(stale) == {"wakapi": 121, "wakapi-mobile": 61}

        fresh = await wakapi.get_summary("alice", MAR_8, MAR_9)
        assert fresh is not stale
        assert _projects(fresh) == {"wakapi": 182}

    async def test_reads_ending_now_share_an_entry(self, wakapi):
        first = await wakapi.get_summary("alice", MAR_8, NOW - timedelta(seconds=20))
        second = await wakapi.get_summary("alice", MAR_8, NOW - timedelta(seconds=19.995))
        assert second is first
        assert wakapi.cache.hits == 1
        assert first.to_time == NOW

    async def test_closed_ranges_keep_their_end(self, wakapi):
        end = MAR_9 + timedelta(seconds=30)
        summary = await wakapi.get_summary("alice", MAR_8, end)
        assert summary.to_time == end


class TestAliasLifecycle:
    async def test_alias_applies_at_read_time_then_regenerate_persists_it(self, wakapi):
        await wakapi.run_aggregation()
        await wakapi.add_alias("alice", SummaryType.PROJECT, "wakapi", "wakapi-mobile")

        summary = await wakapi.get_summary("alice", MAR_8, MAR_9)
        assert _projects(summary) == {"wakapi": 182}
        assert summary.total_seconds == 182

        (persisted,) = await wakapi.summaries.query_range("alice", MAR_8, MAR_9)
        assert _projects(persisted) == {"wakapi": 121, "wakapi-mobile": 61}

        assert await wakapi.regenerate_summaries("alice") == 1
        (persisted,) = await wakapi.summaries.query_range("alice", MAR_8, MAR_9)
        assert _projects(persisted) == {"wakapi": 182}

    async def test_delete_alias(self, wakapi):
        await wakapi.add_alias("alice", "project", "wakapi", "wakapi-mobile")
        assert await wakapi.delete_alias("alice", "project", "wakapi-mobile") == 1
        summary = await wakapi.get_summary("alice", MAR_8, MAR_9)
        assert _projects(summary) == {"wakapi": 121, "wakapi-mobile": 61}

    async def test_list_aliases(self, engine):
        alias = await engine.add_alias("alice", "language", "Java", "Java 8")
        assert alias.id is not None
        assert [(a.type, a.value, a.key) for a in await engine.list_aliases("alice")] == [
            (SummaryType.LANGUAGE, "Java 8", "Java")
        ]

    @pytest.mark.parametrize(
        "summary_type, key, value",
        [("branch", "a", "b"), ("project", "", "b"), ("project", "a", "a")],
    )
    async def test_invalid_alias(self, engine, summary_type, key, value):
        with pytest.raises(InvalidRuleError):
            await engine.add_alias("alice", summary_type, key, value)

    async def test_cycle_is_rejected(self, engine):
        await engine.add_alias("alice", "project", "b", "a")
        with pytest.raises(InvalidRuleError):
            await engine.add_alias("alice", "project", "a", "b")


# ─── Languages ────────────────────────────────────────────────────────


class TestLanguages:
    @pytest.fixture
    async def foo(self, engine):
        await engine.ingest("alice", _beats(MAR_8, 0, 60, entity="/src/page.foo"))
        return engine

    async def test_unmapped_language_is_unknown(self, foo):
        summary = await foo.get_summary("alice", MAR_8, MAR_9)
        assert [i.key for i in summary.languages] == ["unknown"]

    async def test_backfill_is_rerunnable(self, foo):
        await foo.get_summary("alice", MAR_8, MAR_9)
        mapping = LanguageMapping("alice", "foo", "Foo")
        assert await foo.backfill_language(mapping) == 2
        assert await foo.backfill_language(mapping) == 0
        summary = await foo.get_summary("alice", MAR_8, MAR_9)
        assert [i.key for i in summary.languages] == ["Foo"]

    async def test_mapping_applies_at_read_time(self, foo):
        await foo.add_language_mapping("alice", "foo", "Foo")
        summary = await foo.get_summary("alice", MAR_8, MAR_9)
        assert [i.key for i in summary.languages] == ["Foo"]
        # Stored rows are only changed by a back-fill
        rows = await foo.heartbeats.query_range("alice", MAR_8, MAR_9)
        assert {r.language for r in rows} == {""}

    async def test_mapping_with_backfill(self, foo):
        await foo.add_language_mapping("alice", ".FOO", "Foo", backfill=True)
        rows = await foo.heartbeats.query_range("alice", MAR_8, MAR_9)
        assert {r.language for r in rows} == {"Foo"}

    async def test_list_and_delete_mappings(self, engine):
        mapping = await engine.add_language_mapping("alice", ".foo", "Foo")
        assert mapping.extension == "foo"
        assert mapping.id is not None
        assert [m.language for m in await engine.list_language_mappings("alice")] == ["Foo"]
        assert await engine.delete_language_mapping("alice", ".FOO") == 1
        assert await engine.list_language_mappings("alice") == []

    async def test_invalid_mapping(self, engine):
        with pytest.raises(InvalidRuleError):
            await engine.add_language_mapping("alice", "*", "Foo")

    async def test_custom_languages_backfill(self, foo, monkeypatch):
        monkeypatch.setenv("CODETIME_CUSTOM_LANGUAGES", "foo=Foo")
        config.reload()
        assert await foo.backfill_custom_languages() == 2
        assert await foo.backfill_custom_languages() == 0


# ─── Users ────────────────────────────────────────────────────────────


class TestUsers:
    async def test_set_timezone(self, engine):
        await engine.set_timezone("alice", "Europe/Berlin")
        assert await engine.users.timezone("alice") == "Europe/Berlin"

    async def test_setting_the_same_timezone_keeps_days(self, wakapi):
        await wakapi.run_aggregation()
        await wakapi.set_timezone("alice", "UTC")
        assert await wakapi.summaries.days("alice") == [date(2024, 3, 8)]

    async def test_timezone_change_rebuilds_days(self, tmp_path):
        now = [NOW]
        engine = CodetimeEngine(tmp_path / "tz.db", workers=1, clock=lambda: now[0])
        await engine.init_db()
        try:
            await engine.ingest("alice", [
                {"time": datetime(2024, 3, 9, 23, 30, tzinfo=timezone.utc).timestamp()},
                {"time": datetime(2024, 3, 10, 0, 30, tzinfo=timezone.utc).timestamp()},
            ])
            await engine.run_aggregation()
            assert await engine.summaries.days("alice") == [date(2024, 3, 9)]

            # Both heartbeats fall on today's date in Tokyo
            await engine.set_timezone("alice", "Asia/Tokyo")
            assert await engine.summaries.days("alice") == []

            now[0] += timedelta(days=1)
            await engine.run_aggregation()
            assert await engine.summaries.days("alice") == [date(2024, 3, 10)]
            summary = await engine.get_summary(
                "alice", MAR_9, datetime(2024, 3, 11, tzinfo=timezone.utc)
            )
            assert summary.total_seconds == 2
        finally:
            await engine.close()

    async def test_invalid_timezone(self, engine):
        with pytest.raises(InvalidRuleError):
            await engine.set_timezone("alice", "Mars/Olympus_Mons")

    async def test_delete_user(self, wakapi):
        await wakapi.run_aggregation()
        await wakapi.add_alias("alice", "project", "wakapi", "wakapi-mobile")
        await wakapi.add_language_mapping("alice", "foo", "Foo")
        await wakapi.ingest("bob", _beats(MAR_8, 0))

        await wakapi.delete_user("alice")

        assert await wakapi.heartbeats.count("alice") == 0
        assert await wakapi.heartbeats.count("bob") == 1
        assert await wakapi.summaries.days("alice") == []
        assert await wakapi.list_aliases("alice") == []
        assert await wakapi.list_language_mappings("alice") == []
        assert await wakapi.users.get_watermark("alice") is None
        assert not await wakapi.users.exists("alice")

    async def test_delete_unknown_user(self, engine):
        with pytest.raises(UserNotFound):
            await engine.delete_user("ghost")

    async def test_stats(self, wakapi):
        stats = await wakapi.stats()
        assert stats["heartbeats"] == 5
        assert stats["users"] == 1
        assert stats["scheduler_state"] == "idle"


# ─── Helpers ──────────────────────────────────────────────────────────


def test_uncovered_intervals():
    days = [
        Summary("alice", MAR_8, MAR_9),
        Summary("alice", MAR_9, TODAY),
    ]
    start, end = MAR_8 - timedelta(hours=6), NOW
    assert uncovered_intervals(days, start, end) == [(start, MAR_8), (TODAY, NOW)]
    assert uncovered_intervals([], MAR_8, MAR_9) == [(MAR_8, MAR_9)]
    assert uncovered_intervals(days, MAR_8, TODAY) == []


def test_normalize_range_rounds_open_ends_only():
    start = MAR_8
    assert normalize_range(start, NOW - timedelta(seconds=20), NOW) == (start, NOW)
    assert normalize_range(start, NOW + timedelta(seconds=1), NOW) == (
        start, NOW + timedelta(minutes=1)
    )
    assert normalize_range(start, NOW, NOW) == (start, NOW)
    closed = NOW - timedelta(minutes=5, seconds=7)
    assert normalize_range(start, closed, NOW) == (start, closed)
