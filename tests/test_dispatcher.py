"""
Tests for outbound delivery.

Tests verify:
- Delivery counts for session and global fan-out
- Misses are reported, never raised
- Shutdown closes every connection once with 1001
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from stream_gateway.components.core.constants import WSCloseCode
from stream_gateway.core.connection.dispatcher import (
    SHUTDOWN_REASON,
    Dispatcher,
    serialize_payload,
)
from tests.conftest import FakeTransport


@pytest.fixture
def dispatcher(registry, metrics):
    return Dispatcher(registry, metrics, send_timeout=0.1)


class TestSerializePayload:
    """Tests for serialize_payload()."""

    def test_text_and_bytes_pass_through(self):
        assert serialize_payload("hi") == "hi"
        assert serialize_payload(b"\x00") == b"\x00"
        assert serialize_payload(bytearray(b"ab")) == b"ab"

    def test_objects_are_json_encoded(self):
        assert json.loads(serialize_payload({"type": "ack", "n": 1})) == {"type": "ack", "n": 1}


class TestSendToConnection:
    """Tests for send_to_connection()."""

    @pytest.mark.asyncio
    async def test_delivers_json(self, registry, dispatcher):
        transport = FakeTransport()
        conn = registry.register(transport, session_id="S1")

        assert await dispatcher.send_to_connection(conn.connection_id, {"type": "ack"}) is True
        assert transport.sent_json() == [{"type": "ack"}]

    @pytest.mark.asyncio
    async def test_bytes_sent_as_binary(self, registry, dispatcher):
        transport = FakeTransport()
        conn = registry.register(transport, session_id="S1")

        await dispatcher.send_to_connection(conn.connection_id, b"\x01\x02")

        assert transport.sent_bytes == [b"\x01\x02"]
        assert transport.sent_text == []

    @pytest.mark.asyncio
    async def test_unknown_connection_returns_false(self, dispatcher, metrics):
        assert await dispatcher.send_to_connection("client_missing", "x") is False
        assert metrics.get_snapshot()["delivery"]["missed"] == 1

    @pytest.mark.asyncio
    async def test_closed_transport_returns_false(self, registry, dispatcher):
        transport = FakeTransport()
        conn = registry.register(transport, session_id="S1")
        transport.is_open = False

        assert await dispatcher.send_to_connection(conn.connection_id, "x") is False
        assert transport.sent_text == []

    @pytest.mark.asyncio
    async def test_send_error_returns_false(self, registry, dispatcher):
        conn = registry.register(FakeTransport(fail_sends=True), session_id="S1")
        assert await dispatcher.send_to_connection(conn.connection_id, "x") is False

    @pytest.mark.asyncio
    async def test_slow_send_times_out(self, registry, dispatcher):
        transport = FakeTransport()

        async def hang(data):
            await asyncio.sleep(10)

        transport.send_text = hang
        conn = registry.register(transport, session_id="S1")

        assert await dispatcher.send_to_connection(conn.connection_id, "x") is False


class TestFanOut:
    """Tests for send_to_session() and broadcast()."""

    @pytest.mark.asyncio
    async def test_session_delivery_is_exact(self, registry, dispatcher):
        s1 = [FakeTransport() for _ in range(3)]
        s2 = FakeTransport()
        for t in s1:
            registry.register(t, session_id="S1")
        registry.register(s2, session_id="S2")

        count = await dispatcher.send_to_session("S1", {"type": "note"})

        assert count == 3
        assert all(t.sent_json() == [{"type": "note"}] for t in s1)
        assert s2.sent_text == []

    @pytest.mark.asyncio
    async def test_empty_session_returns_zero(self, dispatcher):
        assert await dispatcher.send_to_session("nobody", "x") == 0

    @pytest.mark.asyncio
    async def test_broadcast_survives_failing_connection(self, registry, dispatcher):
        healthy = [FakeTransport() for _ in range(4)]
        for t in healthy:
            registry.register(t, session_id="S1")
        registry.register(FakeTransport(fail_sends=True), session_id="S2")

        count = await dispatcher.broadcast("hello")

        assert count == 4
        assert all(t.sent_text == ["hello"] for t in healthy)

    @pytest.mark.asyncio
    async def test_connections_closing_mid_fan_out(self, registry, dispatcher):
        closing = FakeTransport()
        removed = FakeTransport()
        healthy = [FakeTransport() for _ in range(2)]
        registry.register(closing, session_id="S1")
        removed_conn = registry.register(removed, session_id="S1")
        for t in healthy:
            registry.register(t, session_id="S1")

        snapshot_of = registry.list_by_session

        def snapshot_then_close(session_id):
            # Both go away after the snapshot was taken
            snapshot = snapshot_of(session_id)
            registry.remove(removed_conn.connection_id)
            removed.is_open = False
            closing.fail_sends = True
            return snapshot

        with patch.object(registry, "list_by_session", side_effect=snapshot_then_close):
            count = await dispatcher.send_to_session("S1", {"type": "note"})

        assert count == 2
        assert all(t.sent_json() == [{"type": "note"}] for t in healthy)
        assert removed.sent_text == []

    @pytest.mark.asyncio
    async def test_fan_out_batches_large_sessions(self, registry, metrics):
        dispatcher = Dispatcher(registry, metrics, batch_size=3)
        transports = [FakeTransport() for _ in range(10)]
        for t in transports:
            registry.register(t, session_id="S1")

        assert await dispatcher.send_to_session("S1", "x") == 10
        snapshot = metrics.get_snapshot()["delivery"]
        assert snapshot["delivered"] == 10
        assert snapshot["fanouts"] == 1


class TestClose:
    """Tests for close()."""

    @pytest.mark.asyncio
    async def test_close_all(self, registry, metrics):
        on_closed = AsyncMock()
        dispatcher = Dispatcher(registry, metrics, on_closed=on_closed)
        transports = [FakeTransport() for _ in range(3)]
        for t in transports:
            registry.register(t, session_id="S1")

        closed = await dispatcher.close()

        assert closed == 3
        assert registry.count == 0
        assert all(t.closes == [(WSCloseCode.GOING_AWAY, SHUTDOWN_REASON)] for t in transports)
        assert on_closed.await_count == 3

    @pytest.mark.asyncio
    async def test_close_twice_is_safe(self, registry, metrics):
        on_closed = AsyncMock()
        dispatcher = Dispatcher(registry, metrics, on_closed=on_closed)
        transport = FakeTransport()
        registry.register(transport, session_id="S1")

        assert await dispatcher.close() == 1
        assert await dispatcher.close() == 0
        assert len(transport.closes) == 1
        assert on_closed.await_count == 1

    @pytest.mark.asyncio
    async def test_register_after_close_refused(self, registry, dispatcher):
        await dispatcher.close()
        with pytest.raises(ConnectionError):
            registry.register(FakeTransport())

    @pytest.mark.asyncio
    async def test_close_failure_still_removes(self, registry, metrics):
        on_closed = AsyncMock()
        dispatcher = Dispatcher(registry, metrics, on_closed=on_closed)
        registry.register(FakeTransport(fail_close=True), session_id="S1")

        assert await dispatcher.close() == 1
        assert registry.count == 0
        on_closed.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_send_after_close_misses(self, registry, dispatcher):
        conn = registry.register(FakeTransport(), session_id="S1")
        await dispatcher.close()

        assert await dispatcher.send_to_connection(conn.connection_id, "x") is False
        assert await dispatcher.broadcast("x") == 0
