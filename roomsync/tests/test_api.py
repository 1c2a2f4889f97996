"""
Tests for API layer.

Tests:
- API service conversions
- Session lifecycle via HTTP
- Device endpoints
- Error handling (status codes and error codes)
- WebSocket snapshots
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from ..api import APIService, build_controller, create_app
from ..api.schemas import CreateSessionRequest, JumpRequest
from ..config import Settings
from ..store import FileSessionStore, InMemorySessionStore


@pytest.fixture
def service(controller) -> APIService:
    return APIService(controller=controller)


@pytest.fixture
def client(service) -> TestClient:
    return TestClient(create_app(service))


def create_session(client, join_code="K7Q2") -> dict:
    response = client.post("/api/v1/sessions", json={"theme_id": "lab", "join_code": join_code})
    assert response.status_code == 200
    return response.json()


class TestAPIService:
    """Tests for APIService."""

    def test_create_session(self, service):
        response = asyncio.run(service.create_session(CreateSessionRequest(theme_id="lab")))
        assert response.status == "pending"
        assert response.current_puzzle == 2
        assert len(response.join_code) == 4
        assert response.version == 1

    def test_devices_sorted_with_liveness(self, service, clock):
        async def scenario():
            session = await service.create_session(CreateSessionRequest(theme_id="lab"))
            await service.claim_role(session.session_id, "B")
            await service.start_session(session.session_id)
            return await service.get_session(session.session_id)

        response = asyncio.run(scenario())
        assert [d.role for d in response.devices] == ["A", "B"]
        assert [d.alive for d in response.devices] == [False, True]
        assert response.devices[0].media.image == "lab/title.png"

    def test_jump(self, service):
        async def scenario():
            session = await service.create_session(CreateSessionRequest(theme_id="lab"))
            return await service.jump(session.session_id, JumpRequest(target=6))

        response = asyncio.run(scenario())
        assert response.status == "running"
        assert response.current_puzzle == 6
        assert set(response.solved) == {"P2", "P5"}

    def test_build_controller(self, tmp_path):
        """Settings pick the store and catalog implementations."""
        in_memory = build_controller(Settings())
        assert isinstance(in_memory.store, InMemorySessionStore)
        assert not isinstance(in_memory.store, FileSessionStore)

        on_disk = build_controller(Settings(store_path=str(tmp_path / "s.json")))
        assert isinstance(on_disk.store, FileSessionStore)


class TestSessionEndpoints:
    """Tests for session endpoints."""

    def test_create_and_get(self, client):
        created = create_session(client)
        assert created["join_code"] == "K7Q2"
        assert created["status"] == "pending"
        assert created["api_version"] == "v1"

        response = client.get(f"/api/v1/sessions/{created['session_id']}")
        assert response.status_code == 200
        assert response.json()["session_id"] == created["session_id"]

    def test_list_and_delete(self, client):
        created = create_session(client)
        listing = client.get("/api/v1/sessions").json()
        assert listing["count"] == 1

        response = client.delete(f"/api/v1/sessions/{created['session_id']}")
        assert response.json() == {"success": True, "session_id": created["session_id"]}
        assert client.get("/api/v1/sessions").json()["count"] == 0

    def test_join_code_lookup(self, client):
        created = create_session(client)
        response = client.get("/api/v1/join/k7q2")
        assert response.status_code == 200
        assert response.json()["session_id"] == created["session_id"]

    def test_lifecycle(self, client):
        session_id = create_session(client)["session_id"]
        base = f"/api/v1/sessions/{session_id}"

        assert client.post(f"{base}/start").json()["status"] == "running"
        assert client.post(f"{base}/pause").json()["status"] == "paused"
        assert client.post(f"{base}/resume").json()["status"] == "running"

        jumped = client.post(f"{base}/jump", json={"target": 5}).json()
        assert jumped["current_puzzle"] == 5

        resynced = client.post(f"{base}/resync").json()
        device_a = next(d for d in resynced["devices"] if d["role"] == "A")
        assert device_a["media"]["video"].startswith("V?resync=")

        assert client.post(f"{base}/resync-triggers").json()["current_puzzle"] == 5

        ending = client.post(f"{base}/ending").json()
        assert ending["status"] == "ended"
        assert ending["current_puzzle"] == 6

        reset = client.post(f"{base}/reset").json()
        assert reset["status"] == "pending"
        assert reset["current_puzzle"] == 2

        assert client.post(f"{base}/end").json()["status"] == "ended"

    def test_solve(self, client):
        session_id = create_session(client)["session_id"]
        client.post(f"/api/v1/sessions/{session_id}/start")
        response = client.post(
            f"/api/v1/sessions/{session_id}/solve", json={"sequence": 2, "role": "A"}
        )
        assert response.status_code == 200
        assert response.json()["current_puzzle"] == 5


class TestDeviceEndpoints:
    """Tests for device endpoints."""

    def test_claim_heartbeat_answer(self, client):
        session_id = create_session(client)["session_id"]
        base = f"/api/v1/sessions/{session_id}"

        assert client.get(f"{base}/roles").json()["roles"] == ["A", "B"]
        assert client.post(f"{base}/devices/A/claim").status_code == 200
        assert client.get(f"{base}/roles").json()["roles"] == ["B"]
        assert client.post(f"{base}/devices/A/heartbeat").status_code == 204
        assert client.post(f"{base}/devices/A/status", json={"status": "ready"}).status_code == 204

        liveness = client.get(f"{base}/liveness").json()
        assert liveness["alive"] == ["A"]
        assert liveness["missing"] == ["B"]
        assert not liveness["all_connected"]

        client.post(f"{base}/start")
        wrong = client.post(f"{base}/devices/A/answer", json={"answer": "0000"}).json()
        assert wrong["correct"] is False
        assert wrong["solve"] is None

        right = client.post(f"{base}/devices/A/answer", json={"answer": "1234"}).json()
        assert right["correct"] is True
        assert right["puzzle_sequence"] == 2
        assert right["solve"]["current_puzzle"] == 5

    def test_hints(self, client):
        response = client.get("/api/v1/themes/lab/hints/P2")
        assert response.status_code == 200
        assert response.json()["hints"] == ["Look closer at clue 2"]


class TestErrors:
    """Tests for error responses."""

    def test_session_not_found(self, client):
        response = client.get("/api/v1/sessions/missing")
        assert response.status_code == 404
        body = response.json()
        assert body["error_code"] == "SESSION_NOT_FOUND"
        assert body["api_version"] == "v1"

    def test_unknown_join_code(self, client):
        assert client.get("/api/v1/join/ZZZZ").status_code == 404

    def test_unknown_theme(self, client):
        response = client.post("/api/v1/sessions", json={"theme_id": "nope"})
        assert response.status_code == 404
        assert response.json()["error_code"] == "THEME_NOT_FOUND"

    def test_role_taken(self, client):
        session_id = create_session(client)["session_id"]
        client.post(f"/api/v1/sessions/{session_id}/devices/A/claim")
        response = client.post(f"/api/v1/sessions/{session_id}/devices/A/claim")
        assert response.status_code == 409
        assert response.json()["error_code"] == "ROLE_UNAVAILABLE"
        assert response.json()["details"] == {"role": "A"}

    def test_start_gated(self, client):
        session_id = create_session(client)["session_id"]
        response = client.post(
            f"/api/v1/sessions/{session_id}/start", json={"require_all_devices": True}
        )
        assert response.status_code == 409
        assert response.json()["error_code"] == "DEVICES_NOT_READY"
        assert response.json()["details"] == {"missing": ["A", "B"]}

    def test_invalid_transition(self, client):
        session_id = create_session(client)["session_id"]
        client.post(f"/api/v1/sessions/{session_id}/end")
        response = client.post(f"/api/v1/sessions/{session_id}/pause")
        assert response.status_code == 409
        assert response.json()["error_code"] == "INVALID_TRANSITION"

    def test_invalid_role(self, client):
        session_id = create_session(client)["session_id"]
        response = client.post(f"/api/v1/sessions/{session_id}/devices/a.b/claim")
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_unknown_puzzle(self, client):
        session_id = create_session(client)["session_id"]
        response = client.post(
            f"/api/v1/sessions/{session_id}/solve", json={"sequence": 3, "role": "A"}
        )
        assert response.status_code == 404
        assert response.json()["error_code"] == "PUZZLE_NOT_FOUND"

    def test_unknown_hint_code(self, client):
        response = client.get("/api/v1/themes/lab/hints/nope")
        assert response.status_code == 404
        assert response.json()["error_code"] == "PUZZLE_NOT_FOUND"


class TestWebSocket:
    """Tests for the session WebSocket."""

    def test_initial_state_and_ping(self, client):
        session_id = create_session(client)["session_id"]
        with client.websocket_connect(f"/api/v1/sessions/{session_id}/ws") as websocket:
            message = websocket.receive_json()
            assert message["type"] == "state_update"
            assert message["payload"]["session_id"] == session_id

            websocket.send_text('{"type": "ping"}')
            assert websocket.receive_json() == {"type": "pong"}

            websocket.send_text("not json")
            assert websocket.receive_json()["type"] == "error"

    def test_unknown_session(self, client):
        with client.websocket_connect("/api/v1/sessions/missing/ws") as websocket:
            message = websocket.receive_json()
            assert message["type"] == "error"
            assert message["payload"]["error_code"] == "SESSION_NOT_FOUND"


class TestSystem:
    """Tests for health and root."""

    def test_health(self, client):
        assert client.get("/health").json() == {
            "status": "healthy",
            "service": "roomsync",
            "version": "0.1.0",
        }

    def test_root(self, client):
        assert client.get("/").json()["docs"] == "/api/docs"
