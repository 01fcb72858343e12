"""
Dispatcher.

Outbound delivery: one connection, one session, or everyone.

Delivery is best effort and never raises: a send to an absent or
closed connection is a miss, reported as False or as a lower count.
Fan-out is not transactional; a connection failing mid-fan-out does
not stop delivery to the others.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from shared.config.logging import get_logger
from stream_gateway.components.core.constants import WSCloseCode, WSConstants

if TYPE_CHECKING:
    from stream_gateway.components.connection.registry import Connection, ConnectionRegistry
    from stream_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)

SHUTDOWN_REASON = "Server shutdown"

ClosedCallback = Callable[["Connection", int, str], Awaitable[None]]


def serialize_payload(payload: Any) -> str | bytes:
    """
    Prepare a payload for the wire.

    Strings go out verbatim as text frames, bytes as binary frames.
    Anything else is JSON-encoded.
    """
    if isinstance(payload, (str, bytes)):
        return payload
    if isinstance(payload, (bytearray, memoryview)):
        return bytes(payload)
    return json.dumps(payload, default=str)


class Dispatcher:
    """
    Sends messages to registered connections.

    Usage:
        dispatcher = Dispatcher(registry, metrics)
        await dispatcher.send_to_connection(conn_id, {"type": "ack"})
        count = await dispatcher.send_to_session("S1", "hello")
        await dispatcher.close()
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector",
        send_timeout: float = WSConstants.SEND_TIMEOUT,
        batch_size: int = 50,
        on_closed: ClosedCallback | None = None,
    ) -> None:
        """
        Initialize dispatcher.

        Args:
            registry: Registry to look connections up in.
            metrics: Collects delivery metrics.
            send_timeout: Upper bound for a single send.
            batch_size: Connections sent to in parallel during fan-out.
            on_closed: Awaited once per connection removed by close().
        """
        self._registry = registry
        self._metrics = metrics
        self._send_timeout = send_timeout
        self._batch_size = batch_size
        self._on_closed = on_closed

    async def _send(self, connection: "Connection", message: str | bytes) -> bool:
        """Send to a single connection, returning success status."""
        if not connection.is_writable:
            return False
        try:
            if isinstance(message, bytes):
                send = connection.transport.send_bytes(message)
            else:
                send = connection.transport.send_text(message)
            await asyncio.wait_for(send, timeout=self._send_timeout)
            return True
        except Exception as e:
            logger.debug(
                "Send failed",
                connection_id=connection.connection_id,
                error=str(e) or type(e).__name__,
            )
            return False

    async def send_to_connection(self, connection_id: str, payload: Any) -> bool:
        """
        Send a message to one connection.

        Returns:
            True if delivered; False if the connection is absent, not open
            for write, or the send failed.
        """
        connection = self._registry.get(connection_id)
        if connection is None:
            self._metrics.record_delivery(delivered=0, missed=1)
            return False

        delivered = await self._send(connection, serialize_payload(payload))
        self._metrics.record_delivery(delivered=int(delivered), missed=int(not delivered))
        return delivered

    async def _fan_out(
        self,
        connections: list["Connection"],
        payload: Any,
        context: str,
    ) -> int:
        """
        Send to multiple connections in parallel batches.

        Returns:
            Number of connections that received the message.
        """
        if not connections:
            return 0

        message = serialize_payload(payload)
        sent = 0
        failed = 0

        for i in range(0, len(connections), self._batch_size):
            batch = connections[i : i + self._batch_size]
            results = await asyncio.gather(
                *[self._send(c, message) for c in batch],
                return_exceptions=True,
            )
            for result in results:
                if result is True:
                    sent += 1
                else:
                    failed += 1

        self._metrics.record_delivery(delivered=sent, missed=failed, fanout=True)
        if failed > 0:
            logger.debug(
                "Fan-out completed with misses",
                context=context,
                sent=sent,
                failed=failed,
                total=len(connections),
            )
        return sent

    async def send_to_session(self, session_id: str, payload: Any) -> int:
        """Send a message to every connection in a session. Returns delivered count."""
        connections = self._registry.list_by_session(session_id)
        return await self._fan_out(connections, payload, f"session:{session_id}")

    async def broadcast(self, payload: Any) -> int:
        """Send a message to every registered connection. Returns delivered count."""
        connections = self._registry.list_all()
        return await self._fan_out(connections, payload, "global")

    async def close(self) -> int:
        """
        Close every registered connection and stop accepting new ones.

        The registry refuses registrations from the moment it hands out
        the shutdown snapshot, so an accept racing with close() is either
        in the snapshot or refused. Idempotent: later calls return 0.

        Returns:
            Number of connections closed.
        """
        connections = self._registry.close()
        if not connections:
            return 0

        logger.info("Closing all connections", count=len(connections))

        async def close_one(connection: "Connection") -> bool:
            removed = self._registry.remove(connection.connection_id)
            try:
                await connection.transport.close(
                    code=WSCloseCode.GOING_AWAY, reason=SHUTDOWN_REASON
                )
            except Exception as e:
                logger.debug(
                    "Failed to close connection",
                    connection_id=connection.connection_id,
                    error=str(e),
                )
            if removed is None:
                return False
            if self._on_closed is not None:
                try:
                    await self._on_closed(removed, int(WSCloseCode.GOING_AWAY), SHUTDOWN_REASON)
                except Exception as e:
                    logger.warning(
                        "Close callback failed",
                        connection_id=connection.connection_id,
                        error=str(e),
                    )
            return True

        results = await asyncio.gather(
            *[close_one(c) for c in connections],
            return_exceptions=True,
        )
        closed = sum(1 for r in results if r is True)
        logger.info("All connections closed", closed=closed)
        return closed
