"""
Prometheus Metrics Export for the Stream Gateway.

Formats internal metrics in Prometheus text exposition format.
No external dependencies required.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from stream_gateway.connection_manager import ConnectionManager


class MetricType(str, Enum):
    """Prometheus metric types."""

    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass
class MetricDefinition:
    """Definition of a metric and where its value lives in the stats dict."""

    name: str
    help_text: str
    metric_type: MetricType
    path: tuple[str, ...]


METRIC_DEFINITIONS: list[MetricDefinition] = [
    # Gauges
    MetricDefinition(
        name="streamgateway_connections",
        help_text="Current number of registered connections",
        metric_type=MetricType.GAUGE,
        path=("total_connections",),
    ),
    MetricDefinition(
        name="streamgateway_sessions",
        help_text="Number of sessions with at least one connection",
        metric_type=MetricType.GAUGE,
        path=("sessions_with_connections",),
    ),
    MetricDefinition(
        name="streamgateway_connections_awaiting_pong",
        help_text="Connections with an unanswered liveness probe",
        metric_type=MetricType.GAUGE,
        path=("heartbeat", "awaiting_pong"),
    ),
    # Connection counters
    MetricDefinition(
        name="streamgateway_connections_accepted_total",
        help_text="Connections registered since startup",
        metric_type=MetricType.COUNTER,
        path=("metrics", "connections", "accepted"),
    ),
    MetricDefinition(
        name="streamgateway_connections_rejected_total",
        help_text="Connections refused because the gateway was shutting down",
        metric_type=MetricType.COUNTER,
        path=("metrics", "connections", "rejected_shutdown"),
    ),
    MetricDefinition(
        name="streamgateway_disconnections_total",
        help_text="Connections that left the registry, evictions included",
        metric_type=MetricType.COUNTER,
        path=("metrics", "connections", "disconnected"),
    ),
    MetricDefinition(
        name="streamgateway_evictions_total",
        help_text="Connections evicted by heartbeat timeout",
        metric_type=MetricType.COUNTER,
        path=("metrics", "connections", "evicted"),
    ),
    MetricDefinition(
        name="streamgateway_transport_errors_total",
        help_text="Transport-level errors reported by connections",
        metric_type=MetricType.COUNTER,
        path=("metrics", "connections", "transport_errors"),
    ),
    # Frame counters
    MetricDefinition(
        name="streamgateway_data_chunks_total",
        help_text="Inbound frames classified as data chunks",
        metric_type=MetricType.COUNTER,
        path=("metrics", "frames", "data_chunks"),
    ),
    MetricDefinition(
        name="streamgateway_base64_chunks_total",
        help_text="Data chunks received as base64 inside JSON",
        metric_type=MetricType.COUNTER,
        path=("metrics", "frames", "base64_chunks"),
    ),
    MetricDefinition(
        name="streamgateway_control_messages_total",
        help_text="Inbound frames classified as control messages",
        metric_type=MetricType.COUNTER,
        path=("metrics", "frames", "control_messages"),
    ),
    MetricDefinition(
        name="streamgateway_classification_failures_total",
        help_text="Inbound frames that could not be classified",
        metric_type=MetricType.COUNTER,
        path=("metrics", "frames", "classification_failures"),
    ),
    MetricDefinition(
        name="streamgateway_heartbeat_frames_total",
        help_text="Inbound ping/pong frames",
        metric_type=MetricType.COUNTER,
        path=("metrics", "frames", "heartbeats"),
    ),
    MetricDefinition(
        name="streamgateway_received_bytes_total",
        help_text="Bytes received in data chunks",
        metric_type=MetricType.COUNTER,
        path=("metrics", "frames", "bytes_received"),
    ),
    # Delivery counters
    MetricDefinition(
        name="streamgateway_messages_delivered_total",
        help_text="Outbound messages delivered",
        metric_type=MetricType.COUNTER,
        path=("metrics", "delivery", "delivered"),
    ),
    MetricDefinition(
        name="streamgateway_delivery_misses_total",
        help_text="Outbound messages not delivered (absent or closed connection)",
        metric_type=MetricType.COUNTER,
        path=("metrics", "delivery", "missed"),
    ),
    MetricDefinition(
        name="streamgateway_event_handler_failures_total",
        help_text="Collaborator event handlers that raised or timed out",
        metric_type=MetricType.COUNTER,
        path=("event_handler_failures",),
    ),
]


class PrometheusFormatter:
    """
    Formats metrics in Prometheus text exposition format.

    Reference: https://prometheus.io/docs/instrumenting/exposition_formats/

    Usage:
        formatter = PrometheusFormatter()
        output = formatter.format_all_metrics(stats)
    """

    def format_metric(
        self,
        name: str,
        value: float | int,
        help_text: str,
        metric_type: MetricType,
    ) -> str:
        """Format a single metric with its HELP and TYPE lines."""
        return "\n".join([
            f"# HELP {name} {help_text}",
            f"# TYPE {name} {metric_type.value}",
            f"{name} {value}",
        ])

    def format_all_metrics(self, stats: dict[str, Any]) -> str:
        """
        Format all metrics from ConnectionManager stats.

        Args:
            stats: Stats dictionary from ConnectionManager.get_stats().

        Returns:
            Complete Prometheus exposition format string.
        """
        lines: list[str] = []
        for definition in METRIC_DEFINITIONS:
            lines.append(self.format_metric(
                definition.name,
                _lookup(stats, definition.path),
                definition.help_text,
                definition.metric_type,
            ))

        lines.append(self.format_metric(
            "streamgateway_scrape_timestamp",
            int(time.time()),
            "Timestamp of metrics scrape",
            MetricType.GAUGE,
        ))
        return "\n".join(lines) + "\n"


def _lookup(stats: dict[str, Any], path: tuple[str, ...]) -> float | int:
    value: Any = stats
    for key in path:
        if not isinstance(value, dict):
            return 0
        value = value.get(key, 0)
    if isinstance(value, bool):
        return int(value)
    return value if isinstance(value, (int, float)) else 0


_formatter: PrometheusFormatter | None = None


def get_prometheus_formatter() -> PrometheusFormatter:
    """Get singleton Prometheus formatter."""
    global _formatter
    if _formatter is None:
        _formatter = PrometheusFormatter()
    return _formatter


def generate_prometheus_metrics(manager: "ConnectionManager") -> str:
    """Generate Prometheus exposition text from a ConnectionManager."""
    return get_prometheus_formatter().format_all_metrics(manager.get_stats())
