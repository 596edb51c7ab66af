"""
Integration tests for the collaboration server
==============================================
Drives the FastAPI app through TestClient: the WebSocket endpoint, health
probes, stats and the collaborators listing, with the in-memory store.
"""

import json
import logging

import pytest
from fastapi.testclient import TestClient

from src.api.unified_server import create_unified_app
from src.database.memory_session_store import InMemorySessionStore
from src.infrastructure.config.settings import (
    AppSettings,
    DatabaseSettings,
    LoggingSettings,
    SessionStoreBackend,
)


WS_PATH = "/ws/collaborate"


def join_payload(project_id, name):
    return {"type": "join", "projectId": project_id, "userId": f"u-{name}", "username": name}


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def client(store):
    settings = AppSettings(
        database=DatabaseSettings(backend=SessionStoreBackend.MEMORY),
        logging=LoggingSettings(console_enabled=False),
    )
    app = create_unified_app(settings=settings, session_store=store)
    with TestClient(app) as test_client:
        yield test_client


class TestCollaborationWebSocket:
    """WebSocket protocol over a real ASGI stack"""

    def test_alice_and_bob(self, client, store):
        with client.websocket_connect(WS_PATH) as alice:
            alice.send_json(join_payload("p1", "alice"))
            joined = alice.receive_json()
            assert joined["type"] == "joined"
            assert joined["activeUsers"] == [{"userId": "u-alice", "username": "alice"}]

            with client.websocket_connect(WS_PATH) as bob:
                bob.send_json(join_payload("p1", "bob"))
                bob_joined = bob.receive_json()
                assert [u["username"] for u in bob_joined["activeUsers"]] == ["alice", "bob"]

                notice = alice.receive_json()
                assert notice["type"] == "user-joined"
                assert notice["user"] == {"userId": "u-bob", "username": "bob"}

                alice.send_json({"type": "cursor", "data": {"offset": 12}})
                cursor = bob.receive_json()
                assert cursor == {"type": "cursor-update", "userId": "u-alice", "username": "alice", "cursor": {"offset": 12}}

            left = alice.receive_json()
            assert left == {"type": "user-left", "user": {"userId": "u-bob", "username": "bob"}}

            # bob's row is deactivated before user-left goes out
            active = {s.username: s.is_active for s in store.all_sessions()}
            assert active == {"alice": True, "bob": False}

    def test_malformed_frames_do_not_close_connection(self, client):
        with client.websocket_connect(WS_PATH) as alice, client.websocket_connect(WS_PATH) as bob:
            alice.send_json(join_payload("p1", "alice"))
            alice.receive_json()
            bob.send_json(join_payload("p1", "bob"))
            bob.receive_json()
            alice.receive_json()

            bob.send_text("{not json")
            bob.send_json({"type": "teleport"})
            bob.send_json({"type": "update", "data": {"tables": ["users"]}})

            update = alice.receive_json()
            assert update == {"type": "schema-update", "userId": "u-bob", "username": "bob", "changes": {"tables": ["users"]}}

    def test_binary_frames_do_not_close_connection(self, client):
        with client.websocket_connect(WS_PATH) as alice, client.websocket_connect(WS_PATH) as bob:
            alice.send_json(join_payload("p1", "alice"))
            alice.receive_json()
            bob.send_json(join_payload("p1", "bob"))
            bob.receive_json()
            alice.receive_json()

            bob.send_bytes(b'{"type": "heartbeat"}')
            bob.send_bytes(json.dumps({"type": "update", "data": {"v": 2}}).encode("utf-8"))

            assert alice.receive_json() == {"type": "schema-update", "userId": "u-bob", "username": "bob", "changes": {"v": 2}}

    def test_messages_before_join_are_ignored(self, client):
        with client.websocket_connect(WS_PATH) as ws:
            ws.send_json({"type": "cursor", "data": 1})
            ws.send_json(join_payload("p1", "carol"))

            assert ws.receive_json()["type"] == "joined"


class TestHttpEndpoints:
    """Health, readiness, stats and collaborators"""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["type"] == "response"
        assert body["data"]["status"] == "healthy"
        assert "timestamp" in body

    def test_ready(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["data"]["checks"] == {"session_store": True, "staleness_reaper": True}

    def test_collaborators_listing(self, client):
        with client.websocket_connect(WS_PATH) as alice, client.websocket_connect(WS_PATH) as bob:
            alice.send_json(join_payload("p1", "alice"))
            alice.receive_json()
            bob.send_json(join_payload("p1", "bob"))
            bob.receive_json()

            response = client.get("/api/projects/p1/collaborators")

            data = response.json()["data"]
            assert data["count"] == 2
            assert [c["username"] for c in data["collaborators"]] == ["alice", "bob"]

        assert client.get("/api/projects/empty/collaborators").json()["data"]["count"] == 0

    def test_stats(self, client):
        with client.websocket_connect(WS_PATH) as alice:
            alice.send_json(join_payload("p1", "alice"))
            alice.receive_json()

            stats = client.get("/api/collaboration/stats").json()["data"]

            assert stats["registry"]["registered_connections"] == 1
            assert stats["rooms"]["rooms"] == 1
            assert stats["reaper"]["running"] is True
            assert stats["memory_usage_mb"] > 0

    def test_app_uses_its_logging_settings(self, client):
        handlers = logging.getLogger("collaboration_server").handlers

        assert not any(isinstance(h, logging.StreamHandler) for h in handlers)
