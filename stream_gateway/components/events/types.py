"""
Event Value Objects for the Stream Gateway.

Classification produces exactly one of three variants:
- DataChunk: raw bytes owned by a session, ready for the chunk consumer
- ControlMessage: structured message forwarded with its "type" discriminator
- ClassificationFailure: the frame was neither structured data nor binary

All three are ephemeral; the gateway hands them to the event surface
and does not keep them.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Union


class GatewayEvent(str, Enum):
    """Events published to collaborators."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    DATA_CHUNK = "data_chunk"
    CONTROL_MESSAGE = "control_message"
    ERROR = "error"


class ChunkSource(str, Enum):
    """How a data chunk reached the gateway."""

    BINARY = "binary"  # Raw binary frame, preferred
    BASE64 = "base64"  # JSON frame with base64 payload, disfavored


@dataclass(frozen=True)
class DataChunk:
    """
    A classified payload unit.

    timestamp is the classification time, not the time the peer
    produced the data. Format metadata is only present when the peer
    declared it and is carried through unchecked.
    """

    session_id: str
    data: bytes = field(repr=False)
    timestamp: float = field(default_factory=time.time)
    format: str | None = None
    sample_rate: int | None = None
    channels: int | None = None
    source: ChunkSource = ChunkSource.BINARY

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def has_format_metadata(self) -> bool:
        return any(v is not None for v in (self.format, self.sample_rate, self.channels))


@dataclass(frozen=True)
class ControlMessage:
    """
    A classified structured message.

    payload is the whole decoded object, including "type". It is deep
    copied and exposed read-only so one collaborator cannot alter what
    the next one sees.
    """

    type: Any
    payload: Mapping[str, Any]

    @classmethod
    def from_decoded(cls, decoded: dict[str, Any]) -> "ControlMessage":
        return cls(
            type=decoded.get("type"),
            payload=MappingProxyType(copy.deepcopy(decoded)),
        )

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(dict(self.payload))


@dataclass(frozen=True)
class ClassificationFailure:
    """A frame that could not be classified. The connection stays open."""

    detail: str


ClassifiedFrame = Union[DataChunk, ControlMessage, ClassificationFailure]
