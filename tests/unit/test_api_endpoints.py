"""Tests for the verification API endpoints."""

import pytest
from fastapi.testclient import TestClient

from api.server import app


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("THOUGHTCHECK_DB_PATH", str(tmp_path / "api.db"))
    with TestClient(app) as client:
        yield client


def test_health_check(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_preliminary_endpoint(client):
    response = client.post("/api/verification/preliminary", json={"text": "2 + 2 = 4"})

    assert response.status_code == 200
    data = response.json()
    assert data["preverified_thought"].endswith("[✓ Vérifié]")
    assert data["verified_calculations"][0]["is_correct"] is True


def test_preliminary_rejects_empty_text(client):
    response = client.post("/api/verification/preliminary", json={"text": ""})

    assert response.status_code == 422


def test_calculations_endpoint(client):
    response = client.post("/api/verification/calculations", json={"text": "5 + 5 = 3"})

    assert response.status_code == 200
    data = response.json()
    assert data["calculations"][0]["is_correct"] is False
    assert "[✗ Incorrect: " in data["annotated_text"]


def test_deep_then_previous(client):
    deep = client.post(
        "/api/verification/deep",
        json={"text": "2 + 2 = 4", "session_id": "s1", "thought_id": "t1"},
    )

    assert deep.status_code == 200
    data = deep.json()
    assert data["thought_id"] == "t1"
    assert data["verification"]["status"] == "verified"
    assert data["is_verified"] is True
    assert data["verification_source"] == "tools"
    assert data["annotated_text"].endswith("[✓ Vérifié]")

    previous = client.post(
        "/api/verification/previous", json={"text": "2 + 2 = 4", "session_id": "s1"}
    )
    assert previous.json()["source"] == "cache"
    assert previous.json()["is_verified"] is True

    stored = client.get("/api/sessions/s1/verifications")
    assert stored.status_code == 200
    assert [v["text"] for v in stored.json()] == ["2 + 2 = 4"]

    metrics = client.get("/api/verification/metrics").json()
    assert metrics["deep_verifications"] == 1


def test_conclusion_inherits_over_api(client):
    client.post(
        "/api/verification/deep",
        json={"text": "2 + 2 = 4", "session_id": "s1", "thought_id": "t1"},
    )

    response = client.post(
        "/api/verification/previous",
        json={
            "text": "Therefore the total is four",
            "session_id": "s2",
            "thought_type": "conclusion",
            "connected_ids": ["t1"],
        },
    )

    data = response.json()
    assert data["source"] == "propagation"
    assert data["verification_status"] == "partially_verified"


def test_unknown_session_has_no_verifications(client):
    response = client.get("/api/sessions/nobody/verifications")

    assert response.status_code == 200
    assert response.json() == []


def test_thought_registry_is_bounded(monkeypatch, make_thought):
    import api.pipeline as api_pipeline
    from thoughtcheck.verification import BoundedRecencyCache

    monkeypatch.setattr(api_pipeline, "_thought_registry", BoundedRecencyCache(2))
    for thought_id in ("t1", "t2", "t3"):
        api_pipeline.register_thought(make_thought(thought_id=thought_id))

    assert api_pipeline.lookup_thought("t1") is None
    assert api_pipeline.lookup_thought("t3").id == "t3"
    assert len(api_pipeline._thought_registry) == 2
