"""
Lifecycle logging subscribers.

Keep an audit trail of connection lifecycle and inbound data on the
gateway log. They only log; chunk consumers subscribe separately.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from shared.config.logging import audit_ws_connection, get_logger
from stream_gateway.components.core.constants import WSCloseCode
from stream_gateway.components.core.context import sanitize_log_data
from stream_gateway.components.events.types import DataChunk, GatewayEvent

if TYPE_CHECKING:
    from stream_gateway.components.connection.registry import Connection
    from stream_gateway.components.events.surface import EventSurface

logger = get_logger(__name__)


def log_connected(connection: "Connection") -> None:
    audit_ws_connection(
        "CONNECT",
        connection_id=connection.connection_id,
        session_id=connection.session_id,
    )


def log_disconnected(connection: "Connection", close_code: int, close_reason: str) -> None:
    event_type = "EVICTED" if close_code == WSCloseCode.HEARTBEAT_TIMEOUT else "DISCONNECT"
    audit_ws_connection(
        event_type,
        connection_id=connection.connection_id,
        session_id=connection.session_id,
        close_code=close_code,
        reason=sanitize_log_data(close_reason) or None,
        duration_seconds=round(time.time() - connection.connected_at, 1),
    )


def log_data_chunk(chunk: DataChunk) -> None:
    logger.debug(
        "Received data chunk",
        session_id=chunk.session_id,
        bytes=chunk.size,
        source=chunk.source.value,
    )


def log_error(connection: "Connection", detail: str) -> None:
    logger.warning(
        "Streaming connection error",
        connection_id=connection.connection_id,
        detail=detail,
    )


def register_lifecycle_logging(events: "EventSurface") -> None:
    """Subscribe the logging handlers to every lifecycle event."""
    events.subscribe(GatewayEvent.CONNECTED, log_connected)
    events.subscribe(GatewayEvent.DISCONNECTED, log_disconnected)
    events.subscribe(GatewayEvent.DATA_CHUNK, log_data_chunk)
    events.subscribe(GatewayEvent.ERROR, log_error)
