"""
Default event subscribers wired in by the application.
"""

from stream_gateway.handlers.control import ControlReplyHandler
from stream_gateway.handlers.lifecycle import register_lifecycle_logging

__all__ = [
    "ControlReplyHandler",
    "register_lifecycle_logging",
    "register_default_handlers",
]


def register_default_handlers(manager) -> None:
    """Subscribe the control reply handler and lifecycle logging."""
    ControlReplyHandler(manager).register(manager.events)
    register_lifecycle_logging(manager.events)
