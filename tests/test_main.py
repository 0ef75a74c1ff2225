"""HTTP surface: readiness codes and the webhook's always-200 contract."""

import pytest
from fastapi.testclient import TestClient

from app import main


@pytest.fixture
def client():
    # no context manager: lifespan (schema + bot startup) stays out of these tests
    return TestClient(main.app)


@pytest.fixture
def updates(monkeypatch):
    seen = []

    async def fake_process(update_dict):
        seen.append(update_dict)

    monkeypatch.setattr(main, "process_webhook", fake_process)
    return seen


def test_ready_is_503_when_degraded(client, monkeypatch):
    monkeypatch.setattr(main, "run_selftest", lambda: {"status": "degraded", "checks": []})

    assert client.get("/ready").status_code == 503


def test_ready_is_200_when_ok(client, monkeypatch):
    monkeypatch.setattr(main, "run_selftest", lambda: {"status": "ok", "checks": []})

    resp = client.get("/ready")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_webhook_forwards_update(client, updates, monkeypatch):
    monkeypatch.setattr(main.settings, "WEBHOOK_SECRET", None)

    resp = client.post("/webhook/telegram", json={"update_id": 1})

    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
    assert updates == [{"update_id": 1}]


def test_webhook_invalid_json_still_200(client, updates, monkeypatch):
    monkeypatch.setattr(main.settings, "WEBHOOK_SECRET", None)

    resp = client.post("/webhook/telegram", content=b"not json", headers={"Content-Type": "application/json"})

    assert resp.status_code == 200
    assert resp.json()["error"] == "invalid_json"
    assert updates == []


def test_webhook_rejects_wrong_secret(client, updates, monkeypatch):
    monkeypatch.setattr(main.settings, "WEBHOOK_SECRET", "s3cret")

    resp = client.post("/webhook/telegram", json={"update_id": 2}, headers={main.SECRET_HEADER: "nope"})
    assert resp.json() == {"ok": False, "error": "forbidden"}

    resp = client.post("/webhook/telegram", json={"update_id": 3}, headers={main.SECRET_HEADER: "s3cret"})
    assert resp.json() == {"ok": True}
    assert updates == [{"update_id": 3}]


def test_webhook_failure_still_200(client, monkeypatch):
    monkeypatch.setattr(main.settings, "WEBHOOK_SECRET", None)

    async def boom(update_dict):
        raise RuntimeError("handler crashed")

    monkeypatch.setattr(main, "process_webhook", boom)

    resp = client.post("/webhook/telegram", json={"update_id": 4})

    assert resp.status_code == 200
    assert resp.json() == {"ok": False}
