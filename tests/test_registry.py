"""
Tests for the connection registry.

Tests verify:
- Unique connection ids and verbatim session ids
- Idempotent removal
- Snapshots that survive concurrent mutation
- Refusal of registrations after close
"""

import asyncio
import itertools

import pytest

from stream_gateway.components.connection.registry import (
    ConnectionRegistry,
    extract_session_id,
    generate_connection_id,
)
from tests.conftest import FakeTransport


class TestRegister:
    """Tests for register()."""

    def test_connection_ids_are_unique(self, registry):
        ids = {registry.register(FakeTransport()).connection_id for _ in range(200)}
        assert len(ids) == 200
        assert all(i.startswith("client_") for i in ids)

    def test_supplied_session_id_used_verbatim(self, registry):
        conn = registry.register(FakeTransport(), session_id="S1")
        assert conn.session_id == "S1"

    def test_session_id_generated_when_absent(self, registry):
        first = registry.register(FakeTransport())
        second = registry.register(FakeTransport(), session_id="")
        assert first.session_id.startswith("session_")
        assert second.session_id.startswith("session_")
        assert first.session_id != second.session_id

    def test_new_connection_is_alive_and_connected(self, registry):
        conn = registry.register(FakeTransport(), session_id="S1")
        assert conn.is_alive is True
        assert conn.is_connected is True
        assert conn.connected_at <= conn.last_activity

    def test_id_collision_regenerates(self):
        ids = iter(["client_a", "client_a", "client_b"])
        registry = ConnectionRegistry(id_factory=lambda: next(ids))

        first = registry.register(FakeTransport())
        second = registry.register(FakeTransport())

        assert first.connection_id == "client_a"
        assert second.connection_id == "client_b"

    @pytest.mark.asyncio
    async def test_concurrent_registrations_get_distinct_ids(self, registry):
        async def accept():
            await asyncio.sleep(0)
            return registry.register(FakeTransport(), session_id="S1")

        connections = await asyncio.gather(*[accept() for _ in range(50)])

        assert len({c.connection_id for c in connections}) == 50
        assert registry.count == 50


class TestLookup:
    """Tests for get() and list_*()."""

    def test_list_by_session_only_returns_members(self, registry):
        a1 = registry.register(FakeTransport(), session_id="A")
        a2 = registry.register(FakeTransport(), session_id="A")
        registry.register(FakeTransport(), session_id="B")

        members = registry.list_by_session("A")

        assert set(members) == {a1, a2}
        assert registry.list_by_session("missing") == []
        assert registry.session_count == 2

    def test_snapshot_unaffected_by_removal(self, registry):
        conn = registry.register(FakeTransport(), session_id="S1")
        snapshot = registry.list_all()

        registry.remove(conn.connection_id)

        assert snapshot == [conn]
        assert registry.list_all() == []

    def test_get_unknown_returns_none(self, registry):
        assert registry.get("client_missing") is None


class TestRemove:
    """Tests for remove()."""

    def test_remove_is_idempotent(self, registry):
        conn = registry.register(FakeTransport(), session_id="S1")

        removed = registry.remove(conn.connection_id)
        again = registry.remove(conn.connection_id)

        assert removed is conn
        assert again is None
        assert conn.is_connected is False
        assert registry.count == 0

    def test_remove_unknown_does_not_raise(self, registry):
        assert registry.remove("client_never_registered") is None


class TestClose:
    """Tests for close()."""

    def test_close_returns_snapshot_once(self, registry):
        conn = registry.register(FakeTransport(), session_id="S1")

        assert registry.close() == [conn]
        assert registry.close() == []
        assert registry.is_closed is True

    def test_register_after_close_raises(self, registry):
        registry.close()
        with pytest.raises(ConnectionError):
            registry.register(FakeTransport())


class TestHelpers:
    """Tests for id helpers."""

    def test_extract_session_id_prefers_session_id_param(self):
        assert extract_session_id({"sessionId": "S1", "session": "S2"}) == "S1"
        assert extract_session_id({"session": "S2"}) == "S2"

    def test_extract_session_id_treats_empty_as_absent(self):
        assert extract_session_id({"sessionId": ""}) is None
        assert extract_session_id({}) is None
        assert extract_session_id(None) is None

    def test_generated_ids_do_not_repeat(self):
        ids = [generate_connection_id() for _ in itertools.repeat(None, 100)]
        assert len(set(ids)) == 100
