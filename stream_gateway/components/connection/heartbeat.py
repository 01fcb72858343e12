"""
Heartbeat Monitor for the Stream Gateway.

Per-connection state machine driven by a periodic tick:

    ALIVE --(probe sent)--> AWAITING_PONG --(pong)--> ALIVE
                            AWAITING_PONG --(next tick)--> EVICTED

is_alive == False means a probe is outstanding. A peer that stops
answering is evicted on the second tick after it went silent, so
detection lags by up to two intervals.

The probe is an application message ({"type":"ping","timestamp":ms}), not a
protocol-level ping, so a peer must answer it with "pong" or
{"type":"pong"} to stay registered. Streaming data alone does not count.
The welcome frame advertises the interval and the expected reply.

Also answers peer-initiated pings, which count as activity.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from shared.config.logging import get_logger
from stream_gateway.components.core.constants import (
    MSG_PING_PLAIN,
    MSG_PONG_JSON,
    MSG_PONG_PLAIN,
    MessageType,
    WSCloseCode,
    WSConstants,
)

if TYPE_CHECKING:
    from stream_gateway.components.connection.registry import Connection, ConnectionRegistry

logger = get_logger(__name__)

EVICTION_REASON = "Heartbeat timeout"

# Heartbeat frames are tiny; anything longer is never parsed here.
_MAX_HEARTBEAT_FRAME = 64

EvictedCallback = Callable[["Connection", int, str], Awaitable[None]]


def parse_heartbeat_frame(frame: str | bytes) -> str | None:
    """
    Recognize heartbeat traffic.

    Only the plain-text "ping"/"pong" frames are heartbeat-only traffic.
    Their JSON forms are ordinary control messages; the manager applies
    them to liveness after classification. Binary frames are never
    heartbeats.

    Returns:
        MessageType.PING, MessageType.PONG, or None for any other frame.
    """
    if not isinstance(frame, str) or len(frame) > _MAX_HEARTBEAT_FRAME:
        return None

    text = frame.strip()
    if text == MSG_PONG_PLAIN:
        return MessageType.PONG
    if text == MSG_PING_PLAIN:
        return MessageType.PING
    return None


class HeartbeatMonitor:
    """
    Probes every registered connection and evicts the unresponsive ones.

    Usage:
        monitor = HeartbeatMonitor(registry, interval=30.0, on_evicted=notify)
        await monitor.start()
        ...
        monitor.record_pong(connection)  # from the receive loop
        ...
        await monitor.stop()
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        interval: float = WSConstants.HEARTBEAT_INTERVAL,
        on_evicted: EvictedCallback | None = None,
        probe_timeout: float = WSConstants.SEND_TIMEOUT,
    ) -> None:
        """
        Initialize heartbeat monitor.

        Args:
            registry: Registry owning the connections to probe.
            interval: Seconds between ticks.
            on_evicted: Awaited once per evicted connection, after it has been
                removed from the registry and its transport closed.
            probe_timeout: Upper bound for sending one probe or closing one
                evicted transport.
        """
        self._registry = registry
        self._interval = interval
        self._on_evicted = on_evicted
        self._probe_timeout = probe_timeout
        self._task: asyncio.Task | None = None
        self._ticks = 0
        self._evictions = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def evictions(self) -> int:
        """Connections evicted since startup."""
        return self._evictions

    def record_pong(self, connection: "Connection") -> None:
        """Mark a probe as answered."""
        connection.is_alive = True
        connection.touch()

    async def tick(self) -> int:
        """
        Run one probe cycle.

        Enumerates a snapshot first, so connections removed concurrently
        by a disconnect do not disturb iteration.

        Returns:
            Number of connections evicted in this cycle.
        """
        self._ticks += 1
        stale: list["Connection"] = []
        to_probe: list["Connection"] = []

        for connection in self._registry.list_all():
            if not connection.is_alive:
                stale.append(connection)
                continue
            connection.is_alive = False
            to_probe.append(connection)

        # A close that hangs on one dead peer must not hold up the rest
        results = await asyncio.gather(
            *[self._evict(c) for c in stale],
            *[self._probe(c) for c in to_probe],
        )
        return sum(1 for r in results[: len(stale)] if r)

    async def _probe(self, connection: "Connection") -> None:
        try:
            await asyncio.wait_for(connection.transport.ping(), timeout=self._probe_timeout)
        except Exception as e:
            # An unanswered probe is handled by the next tick
            logger.debug(
                "Failed to send liveness probe",
                connection_id=connection.connection_id,
                error=str(e),
            )

    async def _evict(self, connection: "Connection") -> bool:
        """
        Forcibly drop a connection that missed its probe.

        Never raises. Returns False if the connection had already left
        the registry (it disconnected on its own in the meantime).
        """
        removed = self._registry.remove(connection.connection_id)

        try:
            await asyncio.wait_for(
                connection.transport.close(
                    code=WSCloseCode.HEARTBEAT_TIMEOUT, reason=EVICTION_REASON
                ),
                timeout=self._probe_timeout,
            )
        except Exception as e:
            logger.debug(
                "Failed to close stale connection",
                connection_id=connection.connection_id,
                error=str(e),
            )

        if removed is None:
            return False

        self._evictions += 1
        logger.info(
            "Terminated inactive connection",
            connection_id=connection.connection_id,
            session_id=connection.session_id,
            idle_seconds=round(time.time() - connection.last_activity, 1),
        )

        if self._on_evicted is not None:
            try:
                await self._on_evicted(
                    removed, int(WSCloseCode.HEARTBEAT_TIMEOUT), EVICTION_REASON
                )
            except Exception as e:
                logger.warning(
                    "Eviction callback failed",
                    connection_id=connection.connection_id,
                    error=str(e),
                )
        return True

    # =========================================================================
    # Background loop
    # =========================================================================

    async def start(self) -> None:
        """Start ticking in a background task. No-op if already running."""
        if self.is_running:
            logger.warning("Heartbeat monitor already running")
            return
        self._task = asyncio.create_task(self._run(), name="heartbeat_monitor")
        logger.info("Heartbeat monitor started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Cancel the background task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Heartbeat monitor stopped")

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._interval)
                evicted = await self.tick()
                if evicted > 0:
                    logger.info("Evicted unresponsive connections", count=evicted)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in heartbeat tick", error=str(e), exc_info=True)

    def get_stats(self) -> dict[str, Any]:
        """Get heartbeat monitor statistics."""
        now = time.time()
        connections = self._registry.list_all()
        ages = [now - c.last_activity for c in connections]
        return {
            "interval_seconds": self._interval,
            "ticks": self._ticks,
            "evictions": self._evictions,
            "awaiting_pong": sum(1 for c in connections if not c.is_alive),
            "oldest_activity_age": max(ages) if ages else 0,
        }


async def handle_peer_ping(connection: "Connection") -> None:
    """
    Answer a peer-initiated ping with {"type":"pong"}.

    Only connection-related errors are swallowed; the receive loop
    notices the closed transport on its own.
    """
    try:
        await connection.transport.send_text(MSG_PONG_JSON)
    except (ConnectionError, RuntimeError, OSError):
        pass
