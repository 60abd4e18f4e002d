"""
HTTP / WebSocket API - Integration Test

Runs the app in-process (startup starts the tick thread) and drives it
through the REST endpoints and the event stream.
"""

import time

import pytest
from fastapi.testclient import TestClient

from bagging_line.main import app, sim_engine

SMALL_FIELDS = {
    "base_weight": 25.0,
    "container_weight": 0.010,
    "giveaway": 0.020,
    "bagging_tolerance": 0.030,
    "sensor_accuracy": 0.005,
    "range_min": 25.000,
    "range_max": 25.110,
    "throughput_rate": 30000,
}


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as c:
        yield c


def wait_for(predicate, timeout=2.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return False


def test_root(client):
    assert client.get("/").json()["status"] == "ok"


def test_state_snapshot(client):
    state = client.get("/api/state").json()
    assert "Plant.ticks" in state
    assert state["line_a.profile"] == "small"


def test_lines_and_profiles(client):
    lines = client.get("/api/lines").json()
    assert [line["line_id"] for line in lines] == ["line_a", "line_b"]

    profiles = client.get("/api/profiles").json()
    assert profiles["large"]["variant"] == "SACK"
    assert profiles["small"]["final_nominal"] == pytest.approx(25.03)


def test_line_detail(client):
    detail = client.get("/api/lines/line_a").json()
    assert detail["profile"]["name"] == "small"
    assert "items" not in detail
    assert "yield_percent" in detail["metrics"]

    assert isinstance(client.get("/api/lines/line_a/items").json(), list)
    assert isinstance(client.get("/api/lines/line_a/feed").json(), list)


def test_unknown_line_is_404(client):
    assert client.get("/api/lines/line_x").status_code == 404
    assert client.post("/api/lines/line_x/pause").status_code == 404


def test_order(client):
    order = client.get("/api/lines/line_a/order").json()
    assert order["lot_no"] == "0260104002"
    assert order["total_bags"] == 15551
    assert order["eta"] is not None


def test_speed_is_clamped(client):
    response = client.post("/api/lines/line_b/speed", json={"speed": -4})
    assert response.json()["speed"] == pytest.approx(0.001)

    response = client.post("/api/lines/line_b/speed", json={"speed": 1.5})
    assert response.json()["speed"] == 1.5
    client.post("/api/lines/line_b/speed", json={"speed": 1.0})


def test_pause_and_resume(client):
    assert client.post("/api/lines/line_b/pause").json()["paused"] is True
    assert client.post("/api/lines/line_b/resume").json()["paused"] is False


def test_remove_missing_item(client):
    assert client.delete("/api/lines/line_a/items/999999").status_code == 404


def test_immediate_switch(client):
    response = client.post("/api/lines/line_b/profile", json={"profile": "small", "mode": "immediate"})
    assert response.json()["status"] == "switched"
    assert client.get("/api/lines/line_b").json()["profile"]["name"] == "small"

    custom = client.post("/api/lines/line_b/profile",
                         json={"custom": {**SMALL_FIELDS, "name": "trial"}, "mode": "immediate"})
    assert custom.json()["profile"] == "trial"

    client.post("/api/lines/line_b/profile", json={"profile": "large", "mode": "immediate"})
    assert sim_engine.get_line("line_b").profile.name == "large"


def test_bad_profile_requests(client):
    assert client.post("/api/lines/line_b/profile", json={"profile": "jumbo"}).status_code == 400
    assert client.post("/api/lines/line_b/profile", json={}).status_code == 400
    missing = client.post("/api/lines/line_b/profile", json={"custom": {"base_weight": 25}})
    assert missing.status_code == 400
    assert "missing fields" in missing.json()["detail"]
    assert client.post("/api/lines/line_b/profile",
                       json={"profile": "small", "mode": "later"}).status_code == 422
    assert sim_engine.get_line("line_b").profile.name == "large"


def test_event_stream(client):
    with client.websocket_connect("/ws") as ws:
        time.sleep(0.05)
        client.post("/api/lines/line_b/pause")
        for _ in range(200):
            event = ws.receive_json()
            if event["type"] == "PRODUCTION_PAUSED":
                break
        assert event["type"] == "PRODUCTION_PAUSED"
        assert event["line_id"] == "line_b"
    client.post("/api/lines/line_b/resume")


def test_safe_swap_is_scheduled_once(client):
    # Runs last: the pending swap holds line_a paused until shutdown cancels it
    response = client.post("/api/lines/line_a/profile", json={"profile": "large"})
    assert response.json()["status"] == "swap_scheduled"

    assert wait_for(lambda: client.get("/api/lines/line_a").json()["swap_in_progress"])
    assert client.get("/api/lines/line_a").json()["paused"] is True
    assert client.post("/api/lines/line_a/profile", json={"profile": "large"}).status_code == 409
