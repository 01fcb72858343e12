"""
Connection Registry.

Single owner of every live connection record. Other components look
records up here and never keep their own copies, so liveness and
membership have one source of truth.

Thread-safe: all mutations happen under one lock and every read
returns a snapshot, so callers may iterate while connections come
and go.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from shared.config.logging import get_logger
from stream_gateway.components.connection.transport import Transport
from stream_gateway.components.core.constants import WSConstants

logger = get_logger(__name__)


def generate_connection_id() -> str:
    """Random connection id; uuid4 does not leak accept order."""
    return f"{WSConstants.CONNECTION_ID_PREFIX}{uuid.uuid4().hex}"


def generate_session_id() -> str:
    """Random session id for peers that did not supply one."""
    return f"{WSConstants.SESSION_ID_PREFIX}{uuid.uuid4().hex}"


def extract_session_id(params: Mapping[str, str] | None) -> str | None:
    """
    Get the peer-supplied session id from handshake parameters.

    Looks at "sessionId" first, then "session". Values are used verbatim;
    an empty value counts as absent.
    """
    if not params:
        return None
    for name in WSConstants.SESSION_QUERY_PARAMS:
        value = params.get(name)
        if value:
            return value
    return None


@dataclass(eq=False)
class Connection:
    """
    One live transport-level connection.

    connection_id and session_id never change after registration.
    is_alive belongs to the heartbeat cycle; is_connected is cleared
    once the connection leaves the registry.
    """

    connection_id: str
    session_id: str
    transport: Transport = field(repr=False)
    is_alive: bool = True
    is_connected: bool = True
    connected_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)

    def touch(self, timestamp: float | None = None) -> None:
        """Record inbound activity."""
        self.last_activity = timestamp if timestamp is not None else time.time()

    @property
    def is_writable(self) -> bool:
        """Registered as connected and the transport is open for write."""
        return self.is_connected and self.transport.is_open

    def to_dict(self) -> dict[str, Any]:
        return {
            "connection_id": self.connection_id,
            "session_id": self.session_id,
            "is_alive": self.is_alive,
            "is_connected": self.is_connected,
            "connected_at": self.connected_at,
            "last_activity": self.last_activity,
        }


class ConnectionRegistry:
    """
    Owns the set of live connections.

    Usage:
        registry = ConnectionRegistry()
        conn = registry.register(transport, session_id="S1")
        registry.list_by_session("S1")  # [conn]
        registry.remove(conn.connection_id)
        registry.remove(conn.connection_id)  # no-op
    """

    def __init__(
        self,
        id_factory: Callable[[], str] = generate_connection_id,
        session_id_factory: Callable[[], str] = generate_session_id,
    ) -> None:
        self._connections: dict[str, Connection] = {}
        self._lock = threading.Lock()
        self._closed = False
        self._id_factory = id_factory
        self._session_id_factory = session_id_factory

    @property
    def is_closed(self) -> bool:
        """Whether the registry stopped accepting registrations."""
        return self._closed

    @property
    def count(self) -> int:
        """Number of live connections."""
        with self._lock:
            return len(self._connections)

    @property
    def session_count(self) -> int:
        """Number of distinct sessions with at least one live connection."""
        with self._lock:
            return len({c.session_id for c in self._connections.values()})

    def register(self, transport: Transport, session_id: str | None = None) -> Connection:
        """
        Create and store a record for a newly accepted transport.

        Args:
            transport: The accepted transport; owned by the record from now on.
            session_id: Peer-supplied session id. Generated if absent or empty.

        Returns:
            The new Connection.

        Raises:
            ConnectionError: If the registry has been closed.
        """
        with self._lock:
            if self._closed:
                raise ConnectionError("Server is shutting down")

            connection_id = self._id_factory()
            while connection_id in self._connections:
                logger.warning("Connection id collision, regenerating", connection_id=connection_id)
                connection_id = self._id_factory()

            connection = Connection(
                connection_id=connection_id,
                session_id=session_id or self._session_id_factory(),
                transport=transport,
            )
            self._connections[connection_id] = connection
        return connection

    def remove(self, connection_id: str) -> Connection | None:
        """
        Delete a record if present.

        Idempotent: removing an absent id returns None instead of raising,
        which is what resolves races between eviction, disconnect and close.

        Returns:
            The removed Connection, or None if it was not registered.
        """
        with self._lock:
            connection = self._connections.pop(connection_id, None)
        if connection is not None:
            connection.is_connected = False
        return connection

    def get(self, connection_id: str) -> Connection | None:
        """Look up a connection by id."""
        with self._lock:
            return self._connections.get(connection_id)

    def list_all(self) -> list[Connection]:
        """Snapshot of all live connections."""
        with self._lock:
            return list(self._connections.values())

    def list_by_session(self, session_id: str) -> list[Connection]:
        """Snapshot of the live connections sharing a session."""
        with self._lock:
            return [c for c in self._connections.values() if c.session_id == session_id]

    def close(self) -> list[Connection]:
        """
        Stop accepting registrations.

        Returns:
            Snapshot of the connections to shut down. Empty on every call
            after the first.
        """
        with self._lock:
            if self._closed:
                return []
            self._closed = True
            return list(self._connections.values())
