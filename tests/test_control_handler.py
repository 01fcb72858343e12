"""
Tests for the control reply protocol.
"""

import logging

import pytest

from stream_gateway.handlers import register_default_handlers
from stream_gateway.handlers.control import ACK_STARTED, ACK_STOPPED, ControlReplyHandler
from tests.conftest import FakeTransport


@pytest.fixture
def handler(manager):
    handler = ControlReplyHandler(manager)
    handler.register(manager.events)
    return handler


class TestControlReplies:
    """start/stop are acknowledged; config and unknown types are only logged."""

    @pytest.mark.asyncio
    async def test_start_acknowledged(self, manager, handler):
        transport = FakeTransport()
        conn = await manager.connect(transport)

        await manager.handle_frame(conn, '{"type": "start"}')

        ack = transport.sent_json()[-1]
        assert ack["type"] == "ack"
        assert ack["message"] == ACK_STARTED
        assert isinstance(ack["timestamp"], int)

    @pytest.mark.asyncio
    async def test_stop_acknowledged(self, manager, handler):
        transport = FakeTransport()
        conn = await manager.connect(transport)

        await manager.handle_frame(conn, '{"type": "stop"}')

        assert transport.sent_json()[-1]["message"] == ACK_STOPPED

    @pytest.mark.asyncio
    async def test_config_logged_without_reply(self, manager, handler, caplog):
        transport = FakeTransport()
        conn = await manager.connect(transport)
        sent_before = len(transport.sent_text)
        caplog.set_level(logging.INFO)

        await manager.handle_frame(conn, '{"type": "config", "config": {"sampleRate": 16000}}')

        assert len(transport.sent_text) == sent_before
        record = next(r for r in caplog.records if r.getMessage() == "Configuration for session")
        assert record.extra_data["config"] == {"sampleRate": 16000}

    @pytest.mark.asyncio
    async def test_unknown_type_logged_without_reply(self, manager, handler, caplog):
        transport = FakeTransport()
        conn = await manager.connect(transport)
        sent_before = len(transport.sent_text)
        caplog.set_level(logging.INFO)

        await manager.handle_frame(conn, '{"type": "rewind"}')

        assert len(transport.sent_text) == sent_before
        assert any(r.getMessage() == "Unknown message type" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_json_pong_not_reported_as_unknown(self, manager, handler, caplog):
        transport = FakeTransport()
        conn = await manager.connect(transport)
        sent_before = len(transport.sent_text)
        caplog.set_level(logging.INFO)

        await manager.handle_frame(conn, '{"type": "pong"}')

        assert len(transport.sent_text) == sent_before
        assert not any(r.getMessage() == "Unknown message type" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_ack_only_goes_to_sender(self, manager, handler):
        sender = FakeTransport({"sessionId": "S1"})
        other = FakeTransport({"sessionId": "S1"})
        conn = await manager.connect(sender)
        await manager.connect(other)

        await manager.handle_frame(conn, '{"type": "start"}')

        assert sender.sent_json()[-1]["type"] == "ack"
        assert other.sent_json()[-1]["type"] == "welcome"


class TestDefaultHandlers:
    """Tests for register_default_handlers()."""

    def test_subscribes_every_event(self, manager):
        register_default_handlers(manager)

        for event in ("connected", "disconnected", "data_chunk", "control_message", "error"):
            assert manager.events.handler_count(event) >= 1

    @pytest.mark.asyncio
    async def test_lifecycle_audit_trail(self, manager, caplog):
        register_default_handlers(manager)
        caplog.set_level(logging.INFO)

        await manager.connect(FakeTransport())
        await manager.heartbeat.tick()
        await manager.heartbeat.tick()

        audit = [
            r.extra_data["event_type"]
            for r in caplog.records
            if r.name == "stream_gateway.audit"
        ]
        assert audit == ["CONNECT", "EVICTED"]
