"""
API tests for the tracking router using FastAPI's TestClient.
"""

import json

import pytest
from fastapi.testclient import TestClient

from main import app

from poses import pushup_points

BASE = "/api/tracking"


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def landmarks(points, visibility=0.9):
    out = []
    for index in range(33):
        x, y = points.get(index, (0.5, 0.5))
        out.append({"x": x, "y": y, "z": 0.0, "visibility": visibility})
    return out


def create_session(client, mode="pushups"):
    response = client.post(f"{BASE}/sessions", json={"user_id": "user-1", "exercise_mode": mode})
    assert response.status_code == 200
    return response.json()["data"]["session_id"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_list_modes(client):
    modes = client.get(f"{BASE}/modes").json()["data"]
    names = {m["mode"] for m in modes}
    assert len(modes) == 17
    assert {"pushups", "wall_sit", "jumping_jacks"} <= names


def test_create_session_and_post_frames(client):
    session_id = create_session(client)

    for i in range(4):
        response = client.post(
            f"{BASE}/sessions/{session_id}/frames",
            json={"timestamp_ms": i * 33, "landmarks": landmarks(pushup_points(165))},
        )
        assert response.status_code == 200

    data = response.json()["data"]
    assert data["outcome"] == "processed"
    assert data["stats"]["posture"] == "correct"

    stats = client.get(f"{BASE}/sessions/{session_id}").json()["data"]
    assert stats["frames_processed"] == 4
    assert stats["stats"]["mode"] == "pushups"


def test_posture_change_is_reported_as_event(client):
    session_id = create_session(client)
    events = []
    for i in range(3):
        response = client.post(
            f"{BASE}/sessions/{session_id}/frames",
            json={"timestamp_ms": i * 33, "landmarks": landmarks(pushup_points(165))},
        )
        events.extend(response.json()["data"]["events"])

    assert {"type": "posture_change", "status": "correct"} in events


def test_no_pose_frame(client):
    session_id = create_session(client)
    response = client.post(f"{BASE}/sessions/{session_id}/frames", json={"timestamp_ms": 0})
    assert response.json()["data"]["outcome"] == "no_pose"


def test_malformed_frame_is_rejected(client):
    session_id = create_session(client)
    response = client.post(
        f"{BASE}/sessions/{session_id}/frames",
        json={"timestamp_ms": 0, "landmarks": landmarks({})[:10]},
    )
    assert response.status_code == 400


def test_unknown_mode(client):
    response = client.post(f"{BASE}/sessions", json={"user_id": "user-1", "exercise_mode": "yoga"})
    assert response.status_code == 400

    session_id = create_session(client)
    response = client.post(f"{BASE}/sessions/{session_id}/mode", json={"exercise_mode": "yoga"})
    assert response.status_code == 400


def test_set_mode_and_reset(client):
    session_id = create_session(client)
    data = client.post(f"{BASE}/sessions/{session_id}/mode", json={"exercise_mode": "Wall-Sit"}).json()["data"]
    assert data["mode"] == "wall_sit"

    data = client.post(f"{BASE}/sessions/{session_id}/reset").json()["data"]
    assert data["stats"]["count"] == 0


def test_skip_calibration(client):
    session_id = create_session(client, mode="jumping_jacks")
    response = client.post(f"{BASE}/sessions/{session_id}/calibrate", json={"skip": True})
    assert response.status_code == 200
    assert response.json()["data"]["is_default"] is True


def test_missing_session(client):
    assert client.get(f"{BASE}/sessions/nope").status_code == 404
    assert client.post(f"{BASE}/sessions/nope/frames", json={"timestamp_ms": 0}).status_code == 404


def test_end_session(client):
    session_id = create_session(client)
    assert client.delete(f"{BASE}/sessions/{session_id}").status_code == 200
    assert client.get(f"{BASE}/sessions/{session_id}").status_code == 404


def test_websocket_stream(client):
    session_id = create_session(client)
    with client.websocket_connect(f"{BASE}/ws/{session_id}") as ws:
        ws.send_text(json.dumps({"type": "ping"}))
        assert json.loads(ws.receive_text())["type"] == "pong"

        ws.send_text(json.dumps({
            "type": "frame",
            "payload": {"timestamp_ms": 0, "landmarks": landmarks(pushup_points(165))},
        }))
        reply = json.loads(ws.receive_text())
        assert reply["type"] == "frame_processed"
        assert reply["payload"]["outcome"] == "processed"

        ws.send_text("not json")
        assert json.loads(ws.receive_text())["type"] == "error"
