"""
Connection correlation for logging.

Binds the id of the WebSocket connection being served to the current
asyncio task so every log line emitted while handling that connection
can be traced back to it.
"""

import logging
from contextvars import ContextVar, Token

# Context variable for connection ID (task-local under asyncio)
connection_id_var: ContextVar[str] = ContextVar("connection_id", default="")


def get_connection_id() -> str:
    """Get the connection ID bound to the current context."""
    return connection_id_var.get()


def bind_connection_id(connection_id: str) -> Token:
    """Bind a connection ID to the current context. Returns a reset token."""
    return connection_id_var.set(connection_id)


def reset_connection_id(token: Token) -> None:
    """Restore the previous connection ID binding."""
    connection_id_var.reset(token)


class ConnectionIdFilter(logging.Filter):
    """
    Logging filter that adds connection_id to log records.

    Usage:
        import logging
        handler = logging.StreamHandler()
        handler.addFilter(ConnectionIdFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.connection_id = connection_id_var.get() or "-"
        return True
