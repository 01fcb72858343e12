"""
Stream Gateway Constants.

Centralized constants with documentation explaining each value.
"""

import time
from enum import IntEnum
from typing import Final

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "MessageType",
    "MSG_PING_PLAIN",
    "MSG_PONG_PLAIN",
    "MSG_PONG_JSON",
    "DEFAULT_ALLOWED_ORIGINS",
    "now_ms",
]


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the gateway.

    Standard codes (1000-1999) from RFC 6455.
    Custom codes (4000-4999) for application-specific closes.
    """

    # Standard codes (RFC 6455)
    NORMAL = 1000  # Normal closure
    GOING_AWAY = 1001  # Server shutting down
    SERVER_ERROR = 1011  # Unexpected server error

    # Custom application codes (4000-4999)
    HEARTBEAT_TIMEOUT = 4000  # Peer missed a full liveness probe cycle


class WSConstants:
    """
    Stream gateway operational constants.

    Values that operators may want to tune live in settings
    (ws_heartbeat_interval, ws_event_callback_timeout, ws_send_timeout);
    the values here are defaults for components built without settings.
    """

    # HEARTBEAT_INTERVAL: 30 seconds
    # A silent peer is evicted on the second tick after it stops answering,
    # so detection lags by up to two intervals.
    HEARTBEAT_INTERVAL: Final[float] = 30.0

    # EVENT_CALLBACK_TIMEOUT: 5 seconds
    # Async collaborators run inline in the connection's receive loop;
    # a stuck handler only stalls its own connection, and only this long.
    EVENT_CALLBACK_TIMEOUT: Final[float] = 5.0

    # ACCEPT_TIMEOUT: 5 seconds
    # Bounds the WebSocket handshake completion.
    ACCEPT_TIMEOUT: Final[float] = 5.0

    # SEND_TIMEOUT: 5 seconds
    # Bounds a single send so one slow peer cannot stall a fan-out.
    SEND_TIMEOUT: Final[float] = 5.0

    # Query parameters carrying a peer-supplied session id, in priority order.
    SESSION_QUERY_PARAMS: Final[tuple[str, ...]] = ("sessionId", "session")

    # Reserved discriminator for structured frames carrying data.
    DATA_FRAME_TYPE: Final[str] = "audio"

    # Prefixes for generated identifiers.
    CONNECTION_ID_PREFIX: Final[str] = "client_"
    SESSION_ID_PREFIX: Final[str] = "session_"


class MessageType:
    """Discriminators of messages the gateway itself sends or consumes."""

    WELCOME: Final[str] = "welcome"
    ACK: Final[str] = "ack"
    PING: Final[str] = "ping"
    PONG: Final[str] = "pong"

    # Control discriminators understood by the default reply handler
    START: Final[str] = "start"
    STOP: Final[str] = "stop"
    CONFIG: Final[str] = "config"


# Heartbeat messages. Plain text variants are accepted for peers
# that cannot easily build JSON.
MSG_PING_PLAIN: Final[str] = "ping"
MSG_PONG_PLAIN: Final[str] = "pong"
MSG_PONG_JSON: Final[str] = '{"type":"pong"}'


DEFAULT_ALLOWED_ORIGINS: Final[tuple[str, ...]] = (
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:8080",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:8080",
)


def now_ms() -> int:
    """Current unix time in milliseconds, as sent on the wire."""
    return int(time.time() * 1000)
