"""
Connection delivery: send to one, a session, or everyone; close all.
"""

from stream_gateway.core.connection.dispatcher import (
    Dispatcher,
    SHUTDOWN_REASON,
    serialize_payload,
)

__all__ = ["Dispatcher", "SHUTDOWN_REASON", "serialize_payload"]
