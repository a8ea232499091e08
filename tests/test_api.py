"""
HTTP tests for the local FastAPI shell, driven through TestClient.

Run: pytest tests/test_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from allears.brief import CONSENT_MESSAGE
from allears.main import create_app
from allears.persistence import MemoryStore
from allears.session import KEY_DRAFT, NOTHING_TO_UNDO
from conftest import FakeClipboard, FakeRecognizer, make_session


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def client(catalog, store):
    session = make_session(catalog, store, recognizer=FakeRecognizer(), clipboard=FakeClipboard())
    with TestClient(create_app(session)) as c:
        yield c


def test_state_snapshot(client):
    r = client.get("/state")
    assert r.status_code == 200
    data = r.json()
    assert data["draft"] == {"text": "", "cursor": 0, "words": 0, "can_undo": False}
    assert data["preview"] == "—"
    assert data["mic"]["supported"] is True
    assert set(data["tiers"]) == {"starter", "pro", "premium"}
    assert data["brief"] == {"text": "", "record": ""}


def test_draft_edit_and_undo(client):
    r = client.put("/draft", json={"text": "Need booking", "cursor": 4})
    assert r.json() == {"text": "Need booking", "cursor": 4, "words": 2, "can_undo": True}

    r = client.post("/draft/undo").json()
    assert r["ok"] is True
    assert r["draft"]["text"] == ""

    r = client.post("/draft/undo").json()
    assert r["ok"] is False
    assert r["message"] == NOTHING_TO_UNDO


def test_clear(client):
    client.put("/draft", json={"text": "something"})
    r = client.post("/draft/clear").json()
    assert r["draft"]["text"] == ""
    assert r["draft"]["can_undo"] is True


def test_insert_preview_without_dictation(client):
    assert client.post("/draft/insert-preview").json()["ok"] is False


def test_answers_and_settings(client):
    r = client.put("/answers/audience", json={"answer": " locals "})
    assert r.json() == {"answers": {"audience": "locals"}}

    r = client.put("/settings", json={"tier": "pro", "consent": True})
    body = r.json()
    assert body["tier"] == "pro"
    assert body["consent"] is True
    assert body["continuous"] is True


def test_mic_start_stop(client):
    r = client.post("/mic/start").json()
    assert r["ok"] is True
    assert r["mic"]["state"] == "starting"

    r = client.post("/mic/stop").json()
    assert r["mic"]["state"] == "stopping"
    assert r["mic"]["status"] == "Mic idle"
    assert client.get("/mic/status").json()["state"] == "stopping"


def test_mic_devices_shape(client):
    assert "devices" in client.get("/mic/devices").json()


def test_brief_flow(client, tmp_path):
    assert client.get("/brief/download").status_code == 404

    client.put("/draft", json={"text": "Need booking and a contact form"})
    r = client.post("/brief").json()
    assert r["ok"] is False
    assert r["message"] == CONSENT_MESSAGE

    client.put("/settings", json={"consent": True})
    r = client.post("/brief").json()
    assert r["ok"] is True
    assert r["document"].startswith("AI ALL EARS")
    assert '"detectedGoals"' in r["record"]

    assert client.get("/brief").json()["document"] == r["document"]
    assert client.post("/brief/copy").json()["ok"] is True

    dl = client.get("/brief/download")
    assert dl.status_code == 200
    assert "ai-all-ears-brief-" in dl.headers["content-disposition"]
    assert dl.text == r["document"]

    exp = client.post("/brief/export", json={"directory": str(tmp_path)}).json()
    assert exp["ok"] is True
    assert exp["path"].startswith(str(tmp_path))


def test_shutdown_flushes_pending_saves(catalog, store):
    session = make_session(catalog, store, recognizer=FakeRecognizer())
    session.gateway.debounce_s = 60
    with TestClient(create_app(session)) as c:
        c.put("/draft", json={"text": "remember me"})
    assert store.data[KEY_DRAFT] == "remember me"
