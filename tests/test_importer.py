"""Tests for heartbeat export reading and resumable imports."""

import json
from datetime import date, datetime, timedelta, timezone

import pytest

from codetime import config
from codetime.importer import HeartbeatImporter, read_heartbeat_export
from codetime.timing.models import ORIGIN_IMPORT

MAR_8 = datetime(2024, 3, 8, 9, 0, tzinfo=timezone.utc)


def _records(count: int, project: str = "wakapi") -> list[dict]:
    return [
        {
            "time": (MAR_8 + timedelta(seconds=30 * i)).timestamp(),
            "entity": "/src/main.go",
            "project": project,
            "type": "file",
        }
        for i in range(count)
    ]


class TestReadExport:
    def test_json_lines(self, tmp_path):
        path = tmp_path / "heartbeats.jsonl"
        lines = [json.dumps(r) for r in _records(3)]
        path.write_text("\n".join([lines[0], "{not json", "", lines[1], lines[2]]) + "\n")
        records = list(read_heartbeat_export(path))
        assert len(records) == 3
        assert records[0]["project"] == "wakapi"

    def test_wakatime_dump(self, tmp_path):
        path = tmp_path / "wakatime.json"
        path.write_text(json.dumps({
            "user": {"username": "alice"},
            "range": {"start": 0, "end": 0},
            "days": [
                {"date": "2024-03-08", "heartbeats": _records(2)},
                {"date": "2024-03-09", "heartbeats": []},
                {"date": "2024-03-10", "heartbeats": _records(1, project="anchr")},
            ],
        }))
        assert [r["project"] for r in read_heartbeat_export(path)] == [
            "wakapi", "wakapi", "anchr"
        ]

    def test_plain_list(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text(json.dumps(_records(2)))
        assert len(list(read_heartbeat_export(path))) == 2

    def test_heartbeats_key(self, tmp_path):
        path = tmp_path / "hb.json"
        path.write_text(json.dumps({"heartbeats": _records(2)}))
        assert len(list(read_heartbeat_export(path))) == 2

    def test_unsupported_document(self, tmp_path):
        path = tmp_path / "other.json"
        path.write_text(json.dumps({"facts": []}))
        with pytest.raises(ValueError):
            list(read_heartbeat_export(path))


class TestHeartbeatImporter:
    async def test_batches_and_regenerates(self, engine):
        importer = HeartbeatImporter(engine, batch_size=2)
        result = await importer.run("alice", iter(_records(5)))
        assert result.read == 5
        assert result.inserted == 5
        assert result.batches == 3
        assert result.regenerated_days == 1
        assert await engine.summaries.days("alice") == [date(2024, 3, 8)]

        rows = await engine.heartbeats.query_range("alice", MAR_8, MAR_8 + timedelta(days=1))
        assert {r.origin for r in rows} == {ORIGIN_IMPORT}
        assert {r.language for r in rows} == {"Go"}

    async def test_rerun_skips_imported_records(self, engine):
        importer = HeartbeatImporter(engine, batch_size=2)
        await importer.run("alice", _records(3))
        result = await importer.run("alice", _records(5))
        assert result.skipped == 3
        assert result.inserted == 2
        assert await engine.heartbeats.count("alice") == 5

    async def test_client_heartbeats_do_not_block_import(self, engine):
        later = MAR_8 + timedelta(days=1)
        await engine.ingest("alice", [{"time": later.timestamp(), "project": "live"}])
        result = await HeartbeatImporter(engine).run("alice", _records(3))
        assert result.skipped == 0
        assert result.inserted == 3

    async def test_rejected_records_are_counted(self, engine):
        records = _records(2) + [{"entity": "no-time.go"}]
        result = await HeartbeatImporter(engine).run("alice", records, regenerate=False)
        assert result.inserted == 2
        assert result.rejected == 1
        assert result.regenerated_days == 0
        assert await engine.summaries.days("alice") == []

    async def test_import_file(self, engine, tmp_path):
        path = tmp_path / "heartbeats.ndjson"
        path.write_text("\n".join(json.dumps(r) for r in _records(4)))
        result = await HeartbeatImporter(engine).import_file("alice", path)
        assert result.inserted == 4

    def test_batch_size_from_config(self, monkeypatch):
        monkeypatch.setenv("CODETIME_IMPORT_BATCH_SIZE", "250")
        config.reload()
        assert HeartbeatImporter(engine=None).batch_size == 250
