"""API integration tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from conftest import FakeAudioBackend
from voice_journal.api import dependencies as deps
from voice_journal.app import app
from voice_journal.storage.media import BYTES_PER_MB


@pytest.fixture
def backend() -> FakeAudioBackend:
    fake = FakeAudioBackend()
    deps._AUDIO_BACKEND = fake
    return fake


@pytest.fixture
def client(backend: FakeAudioBackend, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    media = deps.get_media_store()
    monkeypatch.setattr(media, "available_free_space", lambda: 200 * BYTES_PER_MB)
    with TestClient(app) as test_client:
        yield test_client


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_record_play_delete_flow(client: TestClient, backend: FakeAudioBackend) -> None:
    started = client.post("/recording/start")
    assert started.status_code == 200
    assert started.json()["output_path"].endswith(".wav")

    stopped = client.post("/recording/stop")
    assert stopped.status_code == 200
    payload = stopped.json()
    entry_id = payload["entry"]["id"]
    assert payload["enrichment_scheduled"] is False

    listed = client.get("/entries").json()
    assert [e["id"] for e in listed] == [entry_id]

    played = client.post(f"/playback/{entry_id}")
    assert played.status_code == 200
    assert played.json()["duration"] == backend.load_duration
    assert client.post("/playback/pause").status_code == 200
    assert client.post("/playback/resume").status_code == 200
    assert client.post("/playback/stop").status_code == 200

    deleted = client.delete(f"/entries/{entry_id}")
    assert deleted.status_code == 200
    assert client.get(f"/entries/{entry_id}").status_code == 404


def test_permission_denied_maps_to_403(client: TestClient, backend: FakeAudioBackend) -> None:
    backend.permission = False

    resp = client.post("/recording/start")

    assert resp.status_code == 403
    detail = resp.json()["detail"]
    assert detail["code"] == "no_record_permission"
    assert detail["severity"] == "high"
    assert "open_settings" in detail["actions"]

    diagnostics = client.get("/diagnostics", params={"drain": True}).json()
    assert diagnostics["total_errors"] == 1
    assert diagnostics["notifications"][0]["code"] == "no_record_permission"


def test_complete_recording_rejects_missing_file(client: TestClient) -> None:
    missing = deps.get_media_store().media_dir / "voice_entry_nope.wav"
    resp = client.post("/recording/complete", json={"path": str(missing), "duration": 1.0})

    assert resp.status_code == 500
    assert resp.json()["detail"]["code"] == "audio_file_not_created"


def test_complete_recording_refuses_foreign_file(client: TestClient, tmp_path: Path) -> None:
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    foreign = elsewhere / "important.txt"
    foreign.write_text("do not delete")

    resp = client.post("/recording/complete", json={"path": str(foreign), "duration": 1.0})

    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "media_outside_library"
    assert client.get("/entries").json() == []
    assert foreign.read_text() == "do not delete"


def test_pause_when_idle_conflicts(client: TestClient) -> None:
    resp = client.post("/playback/pause")

    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "illegal_state_transition"


def test_unknown_entry_playback_is_404(client: TestClient) -> None:
    assert client.post("/playback/entry_missing").status_code == 404


def test_system_health_and_integrity(client: TestClient, backend: FakeAudioBackend) -> None:
    media = deps.get_media_store()
    orphan = Path(media.new_media_path())
    orphan.write_bytes(b"\0" * 64)

    health = client.get("/health/system").json()
    assert health["is_healthy"] is True
    assert health["orphaned_files_count"] == 1
    assert health["enrichment_configured"] is False

    integrity = client.get("/integrity").json()
    assert integrity["integrity_score"] == 1.0
    assert integrity["orphaned_paths"] == [str(orphan)]

    cleanup = client.post("/maintenance/cleanup").json()
    assert cleanup["deleted_count"] == 1
    assert client.post("/maintenance/cleanup").json()["deleted_count"] == 0

    backend.available = False
    assert client.get("/health/system").json()["is_healthy"] is False


def test_tags_and_categories(client: TestClient) -> None:
    client.post("/recording/start")
    entry_id = client.post("/recording/stop").json()["entry"]["id"]

    tags = client.put(f"/entries/{entry_id}/tags", json={"tags": ["work"], "text": "#ideas, #work"})
    assert tags.json()["tags"] == ["ideas", "work"]

    categories = client.get("/categories").json()
    ideas = next(c for c in categories if c["name"] == "Ideas")
    assigned = client.put(f"/entries/{entry_id}/category", json={"category_id": ideas["id"]})
    assert assigned.json()["category_id"] == ideas["id"]

    bad = client.put(f"/entries/{entry_id}/category", json={"category_id": "cat_nope"})
    assert bad.status_code == 422


def test_enrich_without_key_is_412(client: TestClient) -> None:
    client.post("/recording/start")
    entry_id = client.post("/recording/stop").json()["entry"]["id"]

    resp = client.post(f"/entries/{entry_id}/enrich")

    assert resp.status_code == 412
    assert resp.json()["detail"]["code"] == "enrichment_not_configured"


def test_metrics_exposed(client: TestClient) -> None:
    client.post("/playback/pause")

    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert "vj_workflow_outcomes_total" in resp.text


def _record(client: TestClient) -> str:
    client.post("/recording/start")
    return client.post("/recording/stop").json()["entry"]["id"]


def test_entry_filters(client: TestClient) -> None:
    tagged = _record(client)
    filed = _record(client)
    client.put(f"/entries/{tagged}/tags", json={"tags": ["gym"]})
    work = next(c for c in client.get("/categories").json() if c["name"] == "Work")
    client.put(f"/entries/{filed}/category", json={"category_id": work["id"]})

    assert [e["id"] for e in client.get("/entries", params={"tag": "gym"}).json()] == [tagged]
    assert [e["id"] for e in client.get("/entries", params={"category_id": work["id"]}).json()] == [filed]
    assert [e["id"] for e in client.get("/entries", params={"uncategorized": True}).json()] == [tagged]
    assert len(client.get("/entries").json()) == 2


def test_category_management(client: TestClient) -> None:
    entry_id = _record(client)

    created = client.post("/categories", json={"name": "Dreams", "color": "#112233"})
    assert created.status_code == 201
    dreams = created.json()
    assert dreams["is_custom"] is True
    assert client.post("/categories", json={"name": "Dreams"}).status_code == 409

    client.put(f"/entries/{entry_id}/category", json={"category_id": dreams["id"]})
    renamed = client.put(f"/categories/{dreams['id']}", json={"name": "Night"})
    assert renamed.json()["name"] == "Night"
    assert client.put("/categories/cat_missing", json={"name": "x"}).status_code == 404

    stats = client.get("/categories/stats").json()
    assert stats[0]["name"] == "Night"
    assert stats[0]["entry_count"] == 1
    assert stats[0]["formatted_duration"] == "0:00"
    assert any(s["category_id"] is None and s["name"] == "Uncategorized" for s in stats)

    work = next(c for c in client.get("/categories").json() if c["name"] == "Work")
    assert client.delete(f"/categories/{work['id']}").status_code == 409
    assert client.delete(f"/categories/{dreams['id']}").status_code == 200
    assert client.get(f"/entries/{entry_id}").json()["category_id"] is None
    assert client.delete(f"/categories/{dreams['id']}").status_code == 404


def test_tag_search_stats_and_merge(client: TestClient) -> None:
    first = _record(client)
    second = _record(client)
    client.put(f"/entries/{first}/tags", json={"text": "#running, #run"})
    client.put(f"/entries/{second}/tags", json={"tags": ["run"]})

    assert [t["label"] for t in client.get("/tags", params={"q": "RUN"}).json()] == ["run", "running"]
    stats = client.get("/tags/stats").json()
    assert (stats[0]["label"], stats[0]["entry_count"]) == ("run", 2)

    merged = client.post("/tags/merge", json={"sources": ["running"], "target": "run"})
    assert merged.json() == {"target": "run", "entries_moved": 0}
    assert [t["label"] for t in client.get("/tags").json()] == ["run"]
    assert client.post("/tags/merge", json={"sources": [], "target": "run"}).status_code == 422


def test_cross_origin_requests_are_not_allowed_by_default(client: TestClient) -> None:
    resp = client.get("/health", headers={"Origin": "http://evil.example"})

    assert "access-control-allow-origin" not in resp.headers


def test_configured_origins_are_allowed() -> None:
    from fastapi import FastAPI

    from voice_journal.app import install_cors

    local = FastAPI()
    install_cors(local, ["http://localhost:3000"])

    @local.get("/ping")
    def ping() -> dict[str, bool]:
        return {"ok": True}

    with TestClient(local) as test_client:
        allowed = test_client.get("/ping", headers={"Origin": "http://localhost:3000"})
        denied = test_client.get("/ping", headers={"Origin": "http://evil.example"})

    assert allowed.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert "access-control-allow-origin" not in denied.headers
