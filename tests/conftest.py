"""
Pytest configuration and fixtures for stream gateway tests.
"""

import asyncio
import json

import pytest

from stream_gateway.components.connection.registry import ConnectionRegistry
from stream_gateway.components.metrics.collector import MetricsCollector
from stream_gateway.connection_manager import ConnectionManager


class FakeTransport:
    """
    In-memory Transport that records everything sent to it.

    Set fail_sends to make send_text/send_bytes/ping raise ConnectionError,
    as a transport torn down underneath the gateway would. Set hang_close
    to make close() never return, like a peer that stopped reading.
    """

    def __init__(self, params=None, fail_sends=False, fail_close=False, hang_close=False):
        self.handshake_params = dict(params or {})
        self.is_open = True
        self.fail_sends = fail_sends
        self.fail_close = fail_close
        self.hang_close = hang_close
        self.sent_text = []
        self.sent_bytes = []
        self.pings = 0
        self.closes = []

    async def send_text(self, data):
        if self.fail_sends:
            raise ConnectionError("transport gone")
        self.sent_text.append(data)

    async def send_bytes(self, data):
        if self.fail_sends:
            raise ConnectionError("transport gone")
        self.sent_bytes.append(data)

    async def ping(self):
        if self.fail_sends:
            raise ConnectionError("transport gone")
        self.pings += 1

    async def close(self, code=1000, reason=""):
        self.closes.append((int(code), reason))
        self.is_open = False
        if self.hang_close:
            await asyncio.sleep(3600)
        if self.fail_close:
            raise RuntimeError("close failed")

    def sent_json(self):
        """Text frames decoded as JSON, skipping any that are not JSON."""
        decoded = []
        for text in self.sent_text:
            try:
                decoded.append(json.loads(text))
            except ValueError:
                continue
        return decoded


class EventRecorder:
    """Subscribes to every gateway event and keeps the calls in order."""

    def __init__(self, events):
        self.calls = []
        for event in ("connected", "disconnected", "data_chunk", "control_message", "error"):
            events.subscribe(event, self._make_handler(event))

    def _make_handler(self, event):
        def handler(*args):
            self.calls.append((event, args))
        return handler

    def of(self, event):
        return [args for name, args in self.calls if name == event]


@pytest.fixture
def make_transport():
    """Factory for FakeTransport instances."""
    def _make(params=None, **kwargs):
        return FakeTransport(params, **kwargs)
    return _make


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def manager():
    """ConnectionManager with short timeouts; the heartbeat loop is not started."""
    return ConnectionManager(
        heartbeat_interval=30.0,
        event_callback_timeout=0.5,
        send_timeout=0.5,
    )


@pytest.fixture
def recorder(manager):
    return EventRecorder(manager.events)
