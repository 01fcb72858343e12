"""
Stream Gateway Connection Manager.

Thin orchestrator composing the gateway components:
- ConnectionRegistry: owns connection records
- HeartbeatMonitor: liveness probing and eviction
- classify_frame: inbound frame classification
- Dispatcher: outbound delivery and shutdown
- EventSurface: notifications to collaborators
- MetricsCollector: counters for health and Prometheus

Endpoints and collaborators talk to this object only.
"""

from __future__ import annotations

from typing import Any

from shared.config.logging import get_logger
from shared.config.settings import settings
from stream_gateway.components.connection.heartbeat import (
    HeartbeatMonitor,
    handle_peer_ping,
    parse_heartbeat_frame,
)
from stream_gateway.components.connection.registry import (
    Connection,
    ConnectionRegistry,
    extract_session_id,
)
from stream_gateway.components.connection.transport import Transport
from stream_gateway.components.core.constants import MessageType, now_ms
from stream_gateway.components.core.context import sanitize_log_data
from stream_gateway.components.events.surface import EventSurface
from stream_gateway.components.events.types import (
    ClassificationFailure,
    ClassifiedFrame,
    ControlMessage,
    DataChunk,
)
from stream_gateway.components.frames.classifier import Frame, classify_frame
from stream_gateway.components.metrics.collector import MetricsCollector
from stream_gateway.core.connection.dispatcher import Dispatcher

logger = get_logger(__name__)

__all__ = ["ConnectionManager"]


class ConnectionManager:
    """
    Manages streaming connections end to end.

    Configuration from settings:
    - ws_heartbeat_interval: Seconds between liveness probes (default: 30)
    - ws_event_callback_timeout: Timeout for async event handlers (default: 5)
    - ws_send_timeout: Upper bound for a single send (default: 5)

    Every connection leaves the registry exactly once (disconnect,
    eviction or shutdown) and "disconnected" is emitted exactly then.
    """

    def __init__(
        self,
        heartbeat_interval: float | None = None,
        event_callback_timeout: float | None = None,
        send_timeout: float | None = None,
        registry: ConnectionRegistry | None = None,
    ) -> None:
        send_timeout = send_timeout if send_timeout is not None else settings.ws_send_timeout

        self._metrics = MetricsCollector()
        self._registry = registry or ConnectionRegistry()
        self._events = EventSurface(
            callback_timeout=(
                event_callback_timeout
                if event_callback_timeout is not None
                else settings.ws_event_callback_timeout
            ),
        )
        self._heartbeat = HeartbeatMonitor(
            self._registry,
            interval=(
                heartbeat_interval
                if heartbeat_interval is not None
                else settings.ws_heartbeat_interval
            ),
            on_evicted=self._on_evicted,
            probe_timeout=send_timeout,
        )
        self._dispatcher = Dispatcher(
            self._registry,
            self._metrics,
            send_timeout=send_timeout,
            on_closed=self._on_removed,
        )

    # =========================================================================
    # Component access
    # =========================================================================

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def events(self) -> EventSurface:
        """Subscribe collaborators here."""
        return self._events

    @property
    def heartbeat(self) -> HeartbeatMonitor:
        return self._heartbeat

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def total_connections(self) -> int:
        return self._registry.count

    def is_shutting_down(self) -> bool:
        return self._registry.is_closed

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start background liveness probing."""
        await self._heartbeat.start()

    async def shutdown(self) -> int:
        """Stop probing and close every connection. Returns connections closed."""
        logger.info("Stream gateway shutting down...")
        await self._heartbeat.stop()
        return await self.close()

    async def connect(self, transport: Transport, session_id: str | None = None) -> Connection:
        """
        Register an accepted transport and greet the peer.

        The session id is taken from the argument, else from the handshake
        parameters, else generated. The welcome frame tells the peer which
        ids it ended up with.

        Raises:
            ConnectionError: If the gateway is shutting down.
        """
        if session_id is None:
            session_id = extract_session_id(transport.handshake_params)

        try:
            connection = self._registry.register(transport, session_id)
        except ConnectionError:
            self._metrics.increment_rejected_shutdown()
            raise

        self._metrics.increment_accepted()
        logger.info(
            "Client connected",
            connection_id=connection.connection_id,
            session_id=connection.session_id,
        )

        await self._events.emit_connected(connection)
        await self._send_welcome(connection)
        return connection

    async def _send_welcome(self, connection: Connection) -> None:
        await self._dispatcher.send_to_connection(
            connection.connection_id,
            {
                "type": MessageType.WELCOME,
                "connectionId": connection.connection_id,
                # Same value under the name older peers read
                "clientId": connection.connection_id,
                "sessionId": connection.session_id,
                "timestamp": now_ms(),
                # Probes are application messages; the peer must reply "pong"
                "heartbeat": {
                    "intervalMs": int(self._heartbeat.interval * 1000),
                    "reply": MessageType.PONG,
                },
            },
        )

    async def disconnect(
        self, connection_id: str, close_code: int, close_reason: str = ""
    ) -> bool:
        """
        Remove a connection after its transport closed.

        Idempotent. Returns False if the connection was already gone
        (evicted or shut down first).
        """
        connection = self._registry.remove(connection_id)
        if connection is None:
            return False
        await self._on_removed(connection, close_code, close_reason)
        return True

    async def _on_evicted(self, connection: Connection, close_code: int, close_reason: str) -> None:
        self._metrics.increment_evicted()
        await self._on_removed(connection, close_code, close_reason)

    async def _on_removed(self, connection: Connection, close_code: int, close_reason: str) -> None:
        self._metrics.increment_disconnected()
        logger.info(
            "Client disconnected",
            connection_id=connection.connection_id,
            session_id=connection.session_id,
            code=close_code,
            reason=sanitize_log_data(close_reason),
        )
        await self._events.emit_disconnected(connection, close_code, close_reason)

    # =========================================================================
    # Inbound
    # =========================================================================

    async def handle_frame(self, connection: Connection, frame: Frame) -> ClassifiedFrame | None:
        """
        Process one inbound frame.

        Plain-text "ping"/"pong" frames are consumed here. Every other frame
        is classified and produces exactly one event: data_chunk,
        control_message, or error. A {"type":"pong"} or {"type":"ping"}
        control message also counts as heartbeat traffic before it is
        emitted.

        Returns:
            The classification, or None for plain-text heartbeat frames and
            frames from connections that already left the registry.
        """
        if not connection.is_connected:
            return None

        connection.touch()

        heartbeat = parse_heartbeat_frame(frame)
        if heartbeat is not None:
            await self._apply_heartbeat(connection, heartbeat)
            return None

        classified = classify_frame(frame, connection)
        self._metrics.record_frame(classified)

        if isinstance(classified, DataChunk):
            await self._events.emit_data_chunk(classified)
        elif isinstance(classified, ControlMessage):
            if classified.type in (MessageType.PING, MessageType.PONG):
                await self._apply_heartbeat(connection, classified.type)
            await self._events.emit_control_message(connection, classified)
        elif isinstance(classified, ClassificationFailure):
            logger.warning(
                "Failed to parse message",
                connection_id=connection.connection_id,
                detail=classified.detail,
                frame=sanitize_log_data(frame),
            )
            await self._events.emit_error(connection, classified.detail)
        return classified

    async def _apply_heartbeat(self, connection: Connection, kind: str) -> None:
        self._metrics.increment_heartbeats()
        if kind == MessageType.PONG:
            self._heartbeat.record_pong(connection)
        else:
            await handle_peer_ping(connection)

    async def handle_transport_error(self, connection: Connection, error: BaseException | str) -> None:
        """Surface a transport fault. The close that follows is a normal disconnect."""
        detail = str(error) or type(error).__name__
        self._metrics.increment_transport_errors()
        logger.error(
            "WebSocket error for client",
            connection_id=connection.connection_id,
            error=detail,
        )
        await self._events.emit_error(connection, detail)

    # =========================================================================
    # Outbound (delegate to dispatcher)
    # =========================================================================

    async def send_to_connection(self, connection_id: str, payload: Any) -> bool:
        """Send to one connection. False if absent or not open for write."""
        return await self._dispatcher.send_to_connection(connection_id, payload)

    async def send_to_session(self, session_id: str, payload: Any) -> int:
        """Send to every connection of a session. Returns delivered count."""
        return await self._dispatcher.send_to_session(session_id, payload)

    async def broadcast(self, payload: Any) -> int:
        """Send to every connection. Returns delivered count."""
        return await self._dispatcher.broadcast(payload)

    async def close(self) -> int:
        """Close every connection and refuse new ones. Idempotent."""
        return await self._dispatcher.close()

    # =========================================================================
    # Lookups (delegate to registry)
    # =========================================================================

    def get_connection(self, connection_id: str) -> Connection | None:
        return self._registry.get(connection_id)

    def get_connections(self) -> list[Connection]:
        return self._registry.list_all()

    def get_connections_by_session(self, session_id: str) -> list[Connection]:
        return self._registry.list_by_session(session_id)

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        """Get connection statistics."""
        return {
            "total_connections": self._registry.count,
            "sessions_with_connections": self._registry.session_count,
            "is_shutting_down": self._registry.is_closed,
            "heartbeat": self._heartbeat.get_stats(),
            "event_handler_failures": self._events.handler_failures,
            "metrics": self._metrics.get_snapshot(),
        }
