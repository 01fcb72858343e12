"""
Event Surface.

Typed observer interface between the gateway core and its
collaborators (chunk consumer, control handlers, audit logging).

The core only emits; it never depends on what a handler does.
A handler that raises or times out is logged and skipped, and the
remaining handlers still run.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import TYPE_CHECKING, Any, Callable

from shared.config.logging import get_logger
from stream_gateway.components.core.constants import WSConstants
from stream_gateway.components.events.types import ControlMessage, DataChunk, GatewayEvent

if TYPE_CHECKING:
    from stream_gateway.components.connection.registry import Connection

logger = get_logger(__name__)

Handler = Callable[..., Any]


class EventSurface:
    """
    Publishes gateway events to subscribed handlers.

    Handler signatures per event:
        CONNECTED        handler(connection)
        DISCONNECTED     handler(connection, close_code, close_reason)
        DATA_CHUNK       handler(chunk)
        CONTROL_MESSAGE  handler(connection, message)
        ERROR            handler(connection, detail)

    Handlers may be plain functions or coroutine functions. Coroutines are
    awaited with a timeout, in subscription order.

    Usage:
        events = EventSurface()

        @events.on(GatewayEvent.DATA_CHUNK)
        async def consume(chunk):
            await pipeline.feed(chunk.session_id, chunk.data)
    """

    def __init__(self, callback_timeout: float = WSConstants.EVENT_CALLBACK_TIMEOUT) -> None:
        self._handlers: dict[GatewayEvent, list[Handler]] = {event: [] for event in GatewayEvent}
        self._callback_timeout = callback_timeout
        self._handler_failures = 0

    @property
    def handler_failures(self) -> int:
        """Handlers that raised or timed out since startup."""
        return self._handler_failures

    def subscribe(self, event: GatewayEvent, handler: Handler) -> Callable[[], None]:
        """
        Register a handler for an event.

        Returns:
            A callable that unsubscribes the handler.
        """
        self._handlers[GatewayEvent(event)].append(handler)
        return lambda: self.unsubscribe(event, handler)

    def unsubscribe(self, event: GatewayEvent, handler: Handler) -> bool:
        """Remove a handler. Returns False if it was not subscribed."""
        handlers = self._handlers[GatewayEvent(event)]
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def on(self, event: GatewayEvent) -> Callable[[Handler], Handler]:
        """Decorator form of subscribe()."""

        def decorator(handler: Handler) -> Handler:
            self.subscribe(event, handler)
            return handler

        return decorator

    def handler_count(self, event: GatewayEvent) -> int:
        return len(self._handlers[GatewayEvent(event)])

    async def emit(self, event: GatewayEvent, *args: Any) -> int:
        """
        Deliver an event to every handler.

        Returns:
            Number of handlers that completed without error.
        """
        completed = 0
        for handler in list(self._handlers[event]):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await asyncio.wait_for(result, timeout=self._callback_timeout)
                completed += 1
            except asyncio.TimeoutError:
                self._handler_failures += 1
                logger.warning(
                    "Event handler timed out",
                    gateway_event=event.value,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    timeout_seconds=self._callback_timeout,
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._handler_failures += 1
                logger.error(
                    "Event handler failed",
                    gateway_event=event.value,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    error=str(e),
                    exc_info=True,
                )
        return completed

    # =========================================================================
    # Typed emitters
    # =========================================================================

    async def emit_connected(self, connection: "Connection") -> int:
        return await self.emit(GatewayEvent.CONNECTED, connection)

    async def emit_disconnected(
        self, connection: "Connection", close_code: int, close_reason: str
    ) -> int:
        return await self.emit(GatewayEvent.DISCONNECTED, connection, close_code, close_reason)

    async def emit_data_chunk(self, chunk: DataChunk) -> int:
        return await self.emit(GatewayEvent.DATA_CHUNK, chunk)

    async def emit_control_message(
        self, connection: "Connection", message: ControlMessage
    ) -> int:
        return await self.emit(GatewayEvent.CONTROL_MESSAGE, connection, message)

    async def emit_error(self, connection: "Connection", detail: str) -> int:
        return await self.emit(GatewayEvent.ERROR, connection, detail)
