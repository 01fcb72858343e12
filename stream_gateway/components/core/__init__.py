"""
Core gateway components: constants and logging context helpers.
"""

from stream_gateway.components.core.constants import (
    WSCloseCode,
    WSConstants,
    MessageType,
    MSG_PING_PLAIN,
    MSG_PONG_PLAIN,
    MSG_PONG_JSON,
    DEFAULT_ALLOWED_ORIGINS,
    now_ms,
)
from stream_gateway.components.core.context import sanitize_log_data

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "MessageType",
    "MSG_PING_PLAIN",
    "MSG_PONG_PLAIN",
    "MSG_PONG_JSON",
    "DEFAULT_ALLOWED_ORIGINS",
    "now_ms",
    "sanitize_log_data",
]
