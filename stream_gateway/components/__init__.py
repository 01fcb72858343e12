"""
Stream Gateway Components.

Organized into domain-specific modules:
- core/       - Foundational components (constants, log sanitizing)
- connection/ - Connection lifecycle (transport, registry, heartbeat)
- frames/     - Inbound frame classification
- events/     - Event value objects and the event surface
- metrics/    - Observability (collector, prometheus)
- endpoints/  - WebSocket endpoints

New code should import from specific submodules for clarity.
"""

from stream_gateway.components.core.constants import (
    WSCloseCode,
    WSConstants,
    MessageType,
    DEFAULT_ALLOWED_ORIGINS,
)
from stream_gateway.components.core.context import sanitize_log_data
from stream_gateway.components.events.types import (
    GatewayEvent,
    ChunkSource,
    DataChunk,
    ControlMessage,
    ClassificationFailure,
    ClassifiedFrame,
)
from stream_gateway.components.events.surface import EventSurface
from stream_gateway.components.connection.transport import Transport, StarletteTransport
from stream_gateway.components.connection.registry import Connection, ConnectionRegistry
from stream_gateway.components.connection.heartbeat import HeartbeatMonitor
from stream_gateway.components.frames.classifier import classify_frame
from stream_gateway.components.metrics.collector import MetricsCollector

__all__ = [
    # Core
    "WSCloseCode",
    "WSConstants",
    "MessageType",
    "DEFAULT_ALLOWED_ORIGINS",
    "sanitize_log_data",
    # Events
    "GatewayEvent",
    "ChunkSource",
    "DataChunk",
    "ControlMessage",
    "ClassificationFailure",
    "ClassifiedFrame",
    "EventSurface",
    # Connection
    "Transport",
    "StarletteTransport",
    "Connection",
    "ConnectionRegistry",
    "HeartbeatMonitor",
    # Frames
    "classify_frame",
    # Metrics
    "MetricsCollector",
]
