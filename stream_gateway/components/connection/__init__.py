"""
Connection management components.

Handles connection lifecycle: transport adapter, registry, heartbeat.
"""

from stream_gateway.components.connection.transport import (
    Transport,
    StarletteTransport,
    is_ws_connected,
)
from stream_gateway.components.connection.registry import (
    Connection,
    ConnectionRegistry,
    extract_session_id,
    generate_connection_id,
    generate_session_id,
)
from stream_gateway.components.connection.heartbeat import (
    HeartbeatMonitor,
    EVICTION_REASON,
    handle_peer_ping,
    parse_heartbeat_frame,
)

__all__ = [
    "Transport",
    "StarletteTransport",
    "is_ws_connected",
    "Connection",
    "ConnectionRegistry",
    "extract_session_id",
    "generate_connection_id",
    "generate_session_id",
    "HeartbeatMonitor",
    "EVICTION_REASON",
    "handle_peer_ping",
    "parse_heartbeat_frame",
]
