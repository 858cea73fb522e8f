"""
CODETIME — API Tests.

Tests for the FastAPI REST API endpoints.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from codetime import __version__, config
from codetime.api import app

MAR_8 = datetime(2024, 3, 8, 9, 0, tzinfo=timezone.utc)
RANGE = {"from": "2024-03-08T00:00:00+00:00", "to": "2024-03-09T00:00:00+00:00"}
VSCODE_UA = (
    "wakatime/13.0.7 (Linux-4.15.0-91-generic-x86_64-with-glibc2.4) "
    "Python3.8.0.final.0 vscode/1.42.1 vscode-wakatime/4.0.0"
)


def _beats(*offsets: float, **fields) -> list[dict]:
    return [{"time": (MAR_8 + timedelta(seconds=s)).timestamp(), **fields} for s in offsets]


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Test client on an isolated database, scheduler disabled."""
    monkeypatch.setenv("CODETIME_DB", str(tmp_path / "api.db"))
    monkeypatch.setenv("CODETIME_RUN_SCHEDULER", "0")
    config.reload()
    with TestClient(app) as c:
        yield c


@pytest.fixture
def seeded(client):
    resp = client.post(
        "/v1/users/alice/heartbeats",
        json=_beats(0, 60, project="wakapi", entity="main.go")
        + _beats(3600, 3630, project="wakapi-mobile", entity="App.kt"),
        headers={"User-Agent": VSCODE_UA},
    )
    assert resp.status_code == 201
    return client


def _items(data: dict, name: str) -> dict[str, int]:
    return {i["key"]: i["total_seconds"] for i in data[name]}


# ─── Health ───────────────────────────────────────────────────────────


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy", "version": __version__, "scheduler": "stopped"}


# ─── Heartbeats ───────────────────────────────────────────────────────


class TestHeartbeats:
    def test_batch_with_invalid_entry(self, client):
        resp = client.post(
            "/v1/users/alice/heartbeats", json=_beats(0, 30) + [{"entity": "no-time.go"}]
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["accepted"] == 2
        assert data["inserted"] == 2
        assert data["rejected"] == 1
        assert len(data["errors"]) == 1

    def test_duplicates(self, client):
        batch = _beats(0, 30)
        client.post("/v1/users/alice/heartbeats", json=batch)
        data = client.post("/v1/users/alice/heartbeats", json=batch).json()
        assert data["accepted"] == 2
        assert data["inserted"] == 0

    def test_single_heartbeat(self, client):
        resp = client.post(
            "/v1/users/alice/heartbeat",
            json={"time": MAR_8.timestamp(), "entity": "main.py", "project": "wakapi"},
        )
        assert resp.status_code == 201
        assert resp.json()["inserted"] == 1

    def test_single_heartbeat_requires_time(self, client):
        resp = client.post("/v1/users/alice/heartbeat", json={"entity": "main.py"})
        assert resp.status_code == 422

    def test_body_must_be_a_list(self, client):
        resp = client.post("/v1/users/alice/heartbeats", json={"time": 1})
        assert resp.status_code == 422


# ─── Summary ──────────────────────────────────────────────────────────


class TestSummary:
    def test_summary(self, seeded):
        resp = seeded.get("/v1/users/alice/summary", params=RANGE)
        assert resp.status_code == 200
        data = resp.json()
        assert data["user_id"] == "alice"
        assert data["total_seconds"] == 61 + 31
        assert _items(data, "projects") == {"wakapi": 61, "wakapi-mobile": 31}
        assert _items(data, "languages") == {"Go": 61, "Kotlin": 31}
        assert _items(data, "editors") == {"vscode": 92}
        assert _items(data, "operating_systems") == {"Linux": 92}
        assert _items(data, "machines") == {"unknown": 92}

    def test_filters_combine_with_or(self, seeded):
        params = {**RANGE, "project": "wakapi", "language": "Kotlin"}
        data = seeded.get("/v1/users/alice/summary", params=params).json()
        assert data["total_seconds"] == 92
        params = {**RANGE, "project": "wakapi"}
        assert seeded.get("/v1/users/alice/summary", params=params).json()["total_seconds"] == 61

    def test_defaults_to_today(self, seeded):
        resp = seeded.get("/v1/users/alice/summary")
        assert resp.status_code == 200
        assert resp.json()["total_seconds"] == 0

    def test_inverted_range(self, client):
        params = {"from": RANGE["to"], "to": RANGE["from"]}
        assert client.get("/v1/users/alice/summary", params=params).status_code == 422

    def test_regenerate(self, seeded):
        resp = seeded.post("/v1/users/alice/summary/regenerate")
        assert resp.status_code == 202
        assert resp.json() == {"user_id": "alice", "status": "scheduled"}


# ─── Settings ─────────────────────────────────────────────────────────


class TestAliases:
    def test_add_list_delete(self, seeded):
        resp = seeded.post(
            "/v1/users/alice/aliases",
            json={"type": "project", "key": "wakapi", "value": "wakapi-mobile"},
        )
        assert resp.status_code == 201
        assert resp.json()["type"] == "project"

        aliases = seeded.get("/v1/users/alice/aliases").json()
        assert [(a["value"], a["key"]) for a in aliases] == [("wakapi-mobile", "wakapi")]

        data = seeded.get("/v1/users/alice/summary", params=RANGE).json()
        assert _items(data, "projects") == {"wakapi": 92}

        resp = seeded.delete("/v1/users/alice/aliases/project/wakapi-mobile")
        assert resp.json() == {"deleted": 1}

    def test_invalid_type(self, client):
        resp = client.post(
            "/v1/users/alice/aliases", json={"type": "branch", "key": "a", "value": "b"}
        )
        assert resp.status_code == 400

    def test_self_mapping(self, client):
        resp = client.post(
            "/v1/users/alice/aliases", json={"type": "project", "key": "a", "value": "a"}
        )
        assert resp.status_code == 400

    def test_empty_key(self, client):
        resp = client.post(
            "/v1/users/alice/aliases", json={"type": "project", "key": " ", "value": "a"}
        )
        assert resp.status_code == 422


class TestLanguageMappings:
    def test_add_list_delete(self, client):
        resp = client.post(
            "/v1/users/alice/language-mappings", json={"extension": ".Foo", "language": "Foo"}
        )
        assert resp.status_code == 201
        assert resp.json()["extension"] == "foo"
        mappings = client.get("/v1/users/alice/language-mappings").json()
        assert [(m["extension"], m["language"]) for m in mappings] == [("foo", "Foo")]
        assert client.delete("/v1/users/alice/language-mappings/foo").json() == {"deleted": 1}

    def test_invalid_extension(self, client):
        resp = client.post(
            "/v1/users/alice/language-mappings", json={"extension": "*", "language": "Foo"}
        )
        assert resp.status_code == 400

    def test_backfill(self, client):
        client.post("/v1/users/alice/heartbeats", json=_beats(0, 60, entity="page.foo"))
        body = {"extension": "foo", "language": "Foo"}
        resp = client.post("/v1/users/alice/language-mappings/backfill", json=body)
        assert resp.status_code == 200
        assert resp.json() == {"rows_affected": 2}
        resp = client.post("/v1/users/alice/language-mappings/backfill", json=body)
        assert resp.json() == {"rows_affected": 0}
        data = client.get("/v1/users/alice/summary", params=RANGE).json()
        assert _items(data, "languages") == {"Foo": 61}


class TestDeleteUser:
    def test_delete(self, seeded):
        assert seeded.delete("/v1/users/alice").status_code == 204
        data = seeded.get("/v1/users/alice/summary", params=RANGE).json()
        assert data["total_seconds"] == 0

    def test_unknown_user(self, client):
        assert client.delete("/v1/users/ghost").status_code == 404
