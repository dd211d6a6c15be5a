"""Integration tests for the WebSocket endpoint."""

import pytest
from starlette.testclient import TestClient

from src.main import app, configure_services

pytestmark = pytest.mark.integration


@pytest.fixture
def client():
    configure_services(app)
    # No context manager: the lifespan would try to reach Postgres and Kafka
    return TestClient(app)


class TestWebSocket:
    def test_connection_frame(self, client):
        with client.websocket_connect("/ws") as ws:
            frame = ws.receive_json()
            assert frame["type"] == "connection"
            assert frame["status"] == "connected"
            assert frame["client_id"]

    def test_protocol_round_trip(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()

            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

            ws.send_json({"type": "subscribe", "channels": ["alerts"]})
            assert ws.receive_json() == {"type": "subscribed", "channels": ["alerts"]}

            ws.send_json({"type": "unsubscribe"})
            assert ws.receive_json() == {"type": "unsubscribed", "channels": []}

            ws.send_json({"type": "join_room", "room": "case-1"})
            assert ws.receive_json() == {"type": "room_joined", "room": "case-1"}

    def test_bad_frames(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()

            ws.send_text("not json")
            assert ws.receive_json() == {"type": "error", "message": "Invalid message format"}

            ws.send_json({"type": "launch"})
            assert ws.receive_json() == {"type": "error", "message": "Unknown message type"}

    def test_connection_counted_in_health(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            stats = client.get("/health").json()["websocket"]
            assert stats["connected_clients"] == 1
