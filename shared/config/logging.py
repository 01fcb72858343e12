"""
Structured logging for the stream gateway.

Loggers accept keyword context (logger.info("Client connected",
session_id=...)). Records are rendered as one JSON object per line or as
colored text, chosen by settings.log_format. The connection being served
is stamped onto every record by ConnectionIdFilter
(see shared.infrastructure.correlation).
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings

_NO_CONNECTION = "-"


def _record_connection_id(record: logging.LogRecord) -> str | None:
    connection_id = getattr(record, "connection_id", None)
    if not connection_id or connection_id == _NO_CONNECTION:
        return None
    return connection_id


def _record_data(record: logging.LogRecord) -> dict[str, Any] | None:
    return getattr(record, "extra_data", None) or None


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        connection_id = _record_connection_id(record)
        if connection_id:
            entry["connection_id"] = connection_id

        data = _record_data(record)
        if data:
            entry["data"] = data

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if settings.debug:
            entry["source"] = f"{record.filename}:{record.lineno} ({record.funcName})"

        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Colored single-line output for a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]

        parts = [f"{color}{clock} {record.levelname:<8}{self.RESET}"]

        connection_id = _record_connection_id(record)
        if connection_id:
            # "client_" plus 8 hex chars tells peers apart
            parts.append(f"{self.DIM}{connection_id[:15]}{self.RESET}")

        parts.append(f"{record.name}: {record.getMessage()}")

        data = _record_data(record)
        if data:
            parts.append(" ".join(f"{k}={v}" for k, v in data.items()))

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """
    Logger whose level methods take keyword context.

    Keyword arguments other than exc_info and stack_info end up in
    record.extra_data.
    """

    def _log_structured(self, level: int, msg: str, args: tuple, kwargs: dict[str, Any]) -> None:
        if not self.isEnabledFor(level):
            return
        exc_info = kwargs.pop("exc_info", None)
        stack_info = kwargs.pop("stack_info", False)
        extra = kwargs.pop("extra", None) or {}
        extra["extra_data"] = kwargs or None
        # stacklevel 3 attributes the record to the caller of info()/error()/...
        self._log(
            level, msg, args,
            exc_info=exc_info, extra=extra, stack_info=stack_info, stacklevel=3,
        )

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_structured(logging.DEBUG, msg, args, kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_structured(logging.INFO, msg, args, kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_structured(logging.WARNING, msg, args, kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_structured(logging.ERROR, msg, args, kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("exc_info", True)
        self._log_structured(logging.ERROR, msg, args, kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_structured(logging.CRITICAL, msg, args, kwargs)


logging.setLoggerClass(StructuredLogger)


def _resolve_level() -> tuple[int, bool]:
    """Returns (level, recognized). An unknown LOG_LEVEL falls back to INFO."""
    if settings.log_level:
        level = logging.getLevelName(settings.log_level.upper())
        if isinstance(level, int):
            return level, True
        return logging.INFO, False
    return (logging.DEBUG if settings.debug else logging.INFO), True


def _use_json() -> bool:
    if settings.log_format:
        return settings.log_format.lower() == "json"
    return settings.environment == "production"


def setup_logging() -> None:
    """
    Configure the root logger. Call once at application startup.

    Level comes from LOG_LEVEL (default DEBUG in debug mode, else INFO);
    format from LOG_FORMAT ("json" or "text", default json in production).
    """
    from shared.infrastructure.correlation import ConnectionIdFilter

    level, recognized = _resolve_level()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(ConnectionIdFilter())
    handler.setFormatter(StructuredFormatter() if _use_json() else DevelopmentFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # uvicorn logs every upgrade request at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)

    if not recognized:
        get_logger(__name__).warning(
            "Unknown LOG_LEVEL, using INFO", log_level=settings.log_level
        )


def get_logger(name: str) -> StructuredLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from shared.config.logging import get_logger
        logger = get_logger(__name__)

        logger.info("Client connected", connection_id=conn.connection_id)
        logger.error("Failed to close transport", exc_info=True)
    """
    return logging.getLogger(name)  # type: ignore


stream_gateway_logger = get_logger("stream_gateway")

# Connection audit trail, separable from operational logs by logger name
stream_audit_logger = get_logger("stream_gateway.audit")


def audit_ws_connection(
    event_type: str,
    connection_id: str | None = None,
    session_id: str | None = None,
    close_code: int | None = None,
    reason: str | None = None,
    **extra: Any,
) -> None:
    """
    Record a connection lifecycle event on the audit logger.

    Args:
        event_type: CONNECT, DISCONNECT, EVICTED or CONNECT_REJECTED.
        connection_id: Gateway-assigned connection id, if registered.
        session_id: Session the connection belongs to.
        close_code: WebSocket close code for disconnect events.
        reason: Close reason or rejection cause.
        **extra: Additional context data.
    """
    stream_audit_logger.info(
        f"WS_AUDIT: {event_type}",
        event_type=event_type,
        connection_id=connection_id,
        session_id=session_id,
        close_code=close_code,
        reason=reason,
        **extra,
    )
