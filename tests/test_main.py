"""
Tests for the FastAPI application: health, metrics and the stream route.
"""

import pytest
from fastapi.testclient import TestClient

from stream_gateway.connection_manager import ConnectionManager
from stream_gateway.main import create_app


@pytest.fixture
def gateway():
    return ConnectionManager(heartbeat_interval=30.0)


@pytest.fixture
def client(gateway):
    with TestClient(create_app(gateway)) as test_client:
        yield test_client


class TestHealthEndpoints:
    """Test health and metrics endpoints."""

    def test_health_check(self, client):
        response = client.get("/ws/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "stream-gateway"
        assert data["total_connections"] == 0

    def test_prometheus_metrics(self, client):
        response = client.get("/ws/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "# TYPE streamgateway_connections gauge" in response.text
        assert "streamgateway_connections 0" in response.text


class TestStreamWebSocket:
    """Test the streaming WebSocket route end to end."""

    def test_welcome_echoes_session(self, client):
        with client.websocket_connect("/ws/stream?sessionId=S1") as ws:
            welcome = ws.receive_json()

        assert welcome["type"] == "welcome"
        assert welcome["sessionId"] == "S1"
        assert welcome["connectionId"].startswith("client_")
        assert welcome["clientId"] == welcome["connectionId"]

    def test_session_alias_param(self, client):
        with client.websocket_connect("/ws/stream?session=S2") as ws:
            assert ws.receive_json()["sessionId"] == "S2"

    def test_generated_session(self, client):
        with client.websocket_connect("/ws/stream") as ws:
            assert ws.receive_json()["sessionId"].startswith("session_")

    def test_root_path_accepted(self, client):
        with client.websocket_connect("/?sessionId=S3") as ws:
            assert ws.receive_json()["sessionId"] == "S3"

    def test_start_acknowledged(self, client):
        with client.websocket_connect("/ws/stream?sessionId=S1") as ws:
            ws.receive_json()
            ws.send_text('{"type": "start"}')
            ack = ws.receive_json()

        assert ack == {"type": "ack", "message": "Streaming started", "timestamp": ack["timestamp"]}

    def test_peer_ping_answered(self, client):
        with client.websocket_connect("/ws/stream") as ws:
            ws.receive_json()
            ws.send_text("ping")
            assert ws.receive_json() == {"type": "pong"}

    def test_bad_frame_keeps_connection_open(self, client):
        with client.websocket_connect("/ws/stream") as ws:
            ws.receive_json()
            ws.send_text("definitely not json")
            ws.send_bytes(b"\x00\x01raw-audio")
            ws.send_text('{"type": "stop"}')
            # Nothing is sent back for the first two frames
            assert ws.receive_json()["message"] == "Streaming stopped"

    def test_connection_counted_while_open(self, client, gateway):
        with client.websocket_connect("/ws/stream?sessionId=S1") as ws:
            ws.receive_json()
            health = client.get("/ws/health").json()
            assert health["total_connections"] == 1
            assert health["sessions_with_connections"] == 1
            assert gateway.get_connections_by_session("S1")[0].session_id == "S1"
