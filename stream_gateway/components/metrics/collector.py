"""
Metrics Collector for the Stream Gateway.

Centralizes counters for observability.
Thread-safe counter operations for concurrent access.
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from typing import Any

from stream_gateway.components.events.types import (
    ChunkSource,
    ClassificationFailure,
    ClassifiedFrame,
    ControlMessage,
    DataChunk,
)


@dataclass
class ConnectionMetrics:
    """Metrics for connection management."""
    accepted: int = 0
    rejected_shutdown: int = 0
    disconnected: int = 0
    evicted: int = 0
    transport_errors: int = 0


@dataclass
class FrameMetrics:
    """Metrics for inbound frame classification."""
    data_chunks: int = 0
    base64_chunks: int = 0
    control_messages: int = 0
    classification_failures: int = 0
    heartbeats: int = 0
    bytes_received: int = 0


@dataclass
class DeliveryMetrics:
    """Metrics for outbound delivery."""
    delivered: int = 0
    missed: int = 0
    fanouts: int = 0


class MetricsCollector:
    """
    Thread-safe metrics collector for the Stream Gateway.

    Provides atomic increment operations and snapshot retrieval.

    Usage:
        metrics = MetricsCollector()
        metrics.record_frame(classified)
        stats = metrics.get_snapshot()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connection = ConnectionMetrics()
        self._frame = FrameMetrics()
        self._delivery = DeliveryMetrics()

    # ==========================================================================
    # Connection Metrics
    # ==========================================================================

    def increment_accepted(self) -> None:
        with self._lock:
            self._connection.accepted += 1

    def increment_rejected_shutdown(self) -> None:
        with self._lock:
            self._connection.rejected_shutdown += 1

    def increment_disconnected(self) -> None:
        with self._lock:
            self._connection.disconnected += 1

    def increment_evicted(self) -> None:
        with self._lock:
            self._connection.evicted += 1

    def increment_transport_errors(self) -> None:
        with self._lock:
            self._connection.transport_errors += 1

    # ==========================================================================
    # Frame Metrics
    # ==========================================================================

    def increment_heartbeats(self) -> None:
        with self._lock:
            self._frame.heartbeats += 1

    def record_frame(self, classified: ClassifiedFrame) -> None:
        """Count one classified frame by outcome."""
        with self._lock:
            if isinstance(classified, DataChunk):
                self._frame.data_chunks += 1
                self._frame.bytes_received += classified.size
                if classified.source == ChunkSource.BASE64:
                    self._frame.base64_chunks += 1
            elif isinstance(classified, ControlMessage):
                self._frame.control_messages += 1
            elif isinstance(classified, ClassificationFailure):
                self._frame.classification_failures += 1

    # ==========================================================================
    # Delivery Metrics
    # ==========================================================================

    def record_delivery(self, delivered: int, missed: int, fanout: bool = False) -> None:
        with self._lock:
            self._delivery.delivered += delivered
            self._delivery.missed += missed
            if fanout:
                self._delivery.fanouts += 1

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    def get_snapshot(self) -> dict[str, Any]:
        """Get a point-in-time copy of every counter."""
        with self._lock:
            return {
                "connections": asdict(self._connection),
                "frames": asdict(self._frame),
                "delivery": asdict(self._delivery),
            }
