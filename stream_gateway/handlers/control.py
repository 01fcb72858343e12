"""
Control Reply Handler - Answers control messages from streaming peers.

Subscribed to CONTROL_MESSAGE on the event surface:
    start   -> ack "Streaming started"
    stop    -> ack "Streaming stopped"
    config  -> logged
    other   -> logged as unknown

Usage:
    handler = ControlReplyHandler(manager)
    handler.register(manager.events)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from shared.config.logging import get_logger
from stream_gateway.components.core.constants import MessageType, now_ms
from stream_gateway.components.core.context import sanitize_log_data
from stream_gateway.components.events.types import ControlMessage, GatewayEvent

if TYPE_CHECKING:
    from stream_gateway.components.connection.registry import Connection
    from stream_gateway.components.events.surface import EventSurface

logger = get_logger(__name__)

ACK_STARTED = "Streaming started"
ACK_STOPPED = "Streaming stopped"


class ConnectionManagerProtocol(Protocol):
    """Protocol for ConnectionManager to avoid circular imports."""

    async def send_to_connection(self, connection_id: str, payload: Any) -> bool: ...


class ControlReplyHandler:
    """Replies to start/stop and records config messages."""

    def __init__(self, manager: ConnectionManagerProtocol):
        self._manager = manager

    def register(self, events: "EventSurface") -> None:
        events.subscribe(GatewayEvent.CONTROL_MESSAGE, self.handle)

    async def handle(self, connection: "Connection", message: ControlMessage) -> None:
        if message.type == MessageType.START:
            logger.info("Starting stream", session_id=connection.session_id)
            await self._ack(connection, ACK_STARTED)
        elif message.type == MessageType.STOP:
            logger.info("Stopping stream", session_id=connection.session_id)
            await self._ack(connection, ACK_STOPPED)
        elif message.type == MessageType.CONFIG:
            logger.info(
                "Configuration for session",
                session_id=connection.session_id,
                config=message.get("config"),
            )
        elif message.type in (MessageType.PING, MessageType.PONG):
            # Liveness was already applied by the manager
            pass
        else:
            logger.info(
                "Unknown message type",
                connection_id=connection.connection_id,
                message_type=sanitize_log_data(str(message.type)),
            )

    async def _ack(self, connection: "Connection", text: str) -> bool:
        return await self._manager.send_to_connection(
            connection.connection_id,
            {"type": MessageType.ACK, "message": text, "timestamp": now_ms()},
        )
