"""
Metrics components for observability.
"""

from stream_gateway.components.metrics.collector import MetricsCollector
from stream_gateway.components.metrics.prometheus import (
    PrometheusFormatter,
    generate_prometheus_metrics,
    get_prometheus_formatter,
)

__all__ = [
    "MetricsCollector",
    "PrometheusFormatter",
    "generate_prometheus_metrics",
    "get_prometheus_formatter",
]
