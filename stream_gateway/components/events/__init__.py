"""
Event components: value objects and the event surface.
"""

from stream_gateway.components.events.types import (
    GatewayEvent,
    ChunkSource,
    DataChunk,
    ControlMessage,
    ClassificationFailure,
    ClassifiedFrame,
)
from stream_gateway.components.events.surface import EventSurface

__all__ = [
    "GatewayEvent",
    "ChunkSource",
    "DataChunk",
    "ControlMessage",
    "ClassificationFailure",
    "ClassifiedFrame",
    "EventSurface",
]
