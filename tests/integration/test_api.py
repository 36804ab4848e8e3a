"""Tests for the storyboard HTTP and WebSocket API."""

import io
import time
import zipfile

import pytest
from fastapi.testclient import TestClient

from api import dependencies
from api.routers import storyboard as storyboard_router
from api.server import app
from utils.errors import AuthorizationError, BackendError, ErrorKind

SCRIPT = "A small fox wanders through a snowy forest at dawn and finds a glowing lantern."


@pytest.fixture
def client(fake_backend, sample_config, monkeypatch):
    """TestClient wired to the in-memory backend."""
    monkeypatch.setattr(dependencies, "_config", sample_config)
    monkeypatch.setattr(dependencies, "_backend", fake_backend)
    with TestClient(app) as test_client:
        yield test_client
    storyboard_router.storyboard_sessions.clear()


def wait_for_status(client, session_id: str, statuses=("completed", "failed"), timeout: float = 10.0) -> dict:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        state = client.get(f"/api/storyboard/sessions/{session_id}").json()
        if state["status"] in statuses:
            return state
        time.sleep(0.01)
    raise AssertionError(f"Session {session_id} did not finish in {timeout}s")


def start_session(client) -> str:
    response = client.post("/api/storyboard/generate", json={"script": SCRIPT, "image_size": "1K"})
    assert response.status_code == 200, response.text
    return response.json()["session_id"]


class TestCoreRoutes:
    """Tests for root and health routes."""

    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_status(self, client):
        response = client.get("/api/storyboard/status")

        assert response.status_code == 200
        assert response.json() == {"gemini": True, "active_sessions": 0}


class TestGenerate:
    """Tests for POST /api/storyboard/generate."""

    def test_session_runs_to_completion(self, client):
        response = client.post("/api/storyboard/generate", json={"script": SCRIPT})

        assert response.status_code == 200
        body = response.json()
        assert body["total_scenes"] == 5
        assert body["total_images"] == 10

        state = wait_for_status(client, body["session_id"])
        assert state["status"] == "completed"
        assert all(s["has_image_a"] and s["has_image_b"] for s in state["storyboard"]["scenes"])
        assert state["progress"] == {"generated": 10, "total": 10}
        assert state["direction_changes"][0] == {"scene_id": 3, "from": "right", "to": "left"}

    def test_session_with_images(self, client):
        session_id = start_session(client)
        wait_for_status(client, session_id)

        response = client.get(f"/api/storyboard/sessions/{session_id}", params={"include_images": True})

        state = response.json()
        assert state["character_image"].startswith("data:image/png;base64,")
        assert state["storyboard"]["scenes"][0]["image_a_url"].startswith("data:image/png;base64,")

    def test_empty_script(self, client):
        response = client.post("/api/storyboard/generate", json={"script": "   "})
        assert response.status_code == 400

    def test_invalid_image_size(self, client):
        response = client.post("/api/storyboard/generate", json={"script": SCRIPT, "image_size": "8K"})
        assert response.status_code == 422

    def test_backend_not_configured(self, client, sample_config, monkeypatch):
        monkeypatch.setattr(dependencies, "_backend", None)
        sample_config["gemini_api_key"] = None

        response = client.post("/api/storyboard/generate", json={"script": SCRIPT})
        assert response.status_code == 400

    def test_malformed_analysis(self, client, fake_backend):
        fake_backend.analysis_text = "not json"

        response = client.post("/api/storyboard/generate", json={"script": SCRIPT})
        assert response.status_code == 502

    def test_authorization_failure(self, client, fake_backend):
        fake_backend.analysis_error = AuthorizationError("denied", status_code=403)

        response = client.post("/api/storyboard/generate", json={"script": SCRIPT})
        assert response.status_code == 401

    def test_backend_failure_during_analysis(self, client, fake_backend):
        fake_backend.analysis_error = BackendError(
            "Gemini rate limit (429 RESOURCE_EXHAUSTED)", kind=ErrorKind.RATE_LIMIT, status_code=429
        )

        response = client.post("/api/storyboard/generate", json={"script": SCRIPT})

        assert response.status_code == 502
        assert response.json()["detail"] == "Gemini rate limit (429 RESOURCE_EXHAUSTED)"


class TestSessions:
    """Tests for session lookup and downloads."""

    def test_unknown_session(self, client):
        assert client.get("/api/storyboard/sessions/missing").status_code == 404
        assert client.get("/api/storyboard/sessions/missing/download/zip").status_code == 404
        assert client.get("/api/storyboard/sessions/missing/download/pdf").status_code == 404

    def test_downloads_when_complete(self, client):
        session_id = start_session(client)
        wait_for_status(client, session_id)

        zip_response = client.get(f"/api/storyboard/sessions/{session_id}/download/zip")
        pdf_response = client.get(f"/api/storyboard/sessions/{session_id}/download/pdf")

        assert zip_response.status_code == 200
        assert zip_response.headers["content-type"] == "application/zip"
        with zipfile.ZipFile(io.BytesIO(zip_response.content)) as archive:
            assert "storyboard-images/Scene_05_B.png" in archive.namelist()

        assert pdf_response.status_code == 200
        assert pdf_response.headers["content-type"] == "application/pdf"
        assert pdf_response.content.startswith(b"%PDF")

    def test_zip_rejected_when_images_missing(self, client, fake_backend):
        fake_backend.fail_on("Scene 2 end frame", BackendError("down"))
        session_id = start_session(client)
        state = wait_for_status(client, session_id)

        assert state["status"] == "completed"
        assert client.get(f"/api/storyboard/sessions/{session_id}/download/zip").status_code == 409
        assert client.get(f"/api/storyboard/sessions/{session_id}/download/pdf").status_code == 200


class TestWebSocket:
    """Tests for the storyboard WebSocket."""

    def test_sends_current_state(self, client):
        session_id = start_session(client)
        wait_for_status(client, session_id)

        with client.websocket_connect(f"/ws/storyboard/{session_id}") as websocket:
            message = websocket.receive_json()
            assert message["type"] == "state"
            assert message["state"]["status"] == "completed"

            websocket.send_text("ping")
            assert websocket.receive_text() == "pong"

    def test_unknown_session(self, client):
        with client.websocket_connect("/ws/storyboard/missing") as websocket:
            message = websocket.receive_json()
            assert message == {"type": "error", "message": "Session not found"}
