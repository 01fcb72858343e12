"""
Frame Classifier.

Turns one inbound frame into exactly one ClassifiedFrame. The decision
table below is the only place that inspects frame contents:

    structured object, type == "audio"  -> DataChunk (base64 "data")
    structured object, any other type   -> ControlMessage
    not structured, binary frame        -> DataChunk (whole payload)
    not structured, text frame          -> ClassificationFailure

"Structured" means the frame decodes as JSON *and* the result is an
object; JSON scalars and arrays fall through to the binary/text rows.
"""

from __future__ import annotations

import base64
import binascii
import json
import time
from typing import TYPE_CHECKING, Any

from shared.config.logging import get_logger
from stream_gateway.components.core.constants import WSConstants
from stream_gateway.components.events.types import (
    ChunkSource,
    ClassificationFailure,
    ClassifiedFrame,
    ControlMessage,
    DataChunk,
)

if TYPE_CHECKING:
    from stream_gateway.components.connection.registry import Connection

logger = get_logger(__name__)

Frame = str | bytes


def decode_structured(frame: Frame) -> tuple[dict[str, Any] | None, str | None]:
    """
    Attempt to decode a frame as a JSON object.

    Returns:
        (decoded, None) on success, (None, detail) on failure.
    """
    if isinstance(frame, (bytes, bytearray, memoryview)):
        try:
            text = bytes(frame).decode("utf-8")
        except UnicodeDecodeError as e:
            return None, f"Frame is not UTF-8 text: {e}"
    else:
        text = frame

    try:
        decoded = json.loads(text)
    except ValueError as e:
        return None, f"Invalid JSON: {e}"

    if not isinstance(decoded, dict):
        return None, f"Expected a JSON object, got {type(decoded).__name__}"
    return decoded, None


def classify_frame(frame: Frame, connection: "Connection") -> ClassifiedFrame:
    """
    Classify one inbound frame from a connection.

    Args:
        frame: Text (str) or binary (bytes) frame as received.
        connection: The owning connection; its session tags data chunks.

    Returns:
        DataChunk, ControlMessage or ClassificationFailure.
    """
    decoded, error = decode_structured(frame)

    if decoded is not None:
        if decoded.get("type") == WSConstants.DATA_FRAME_TYPE:
            return _chunk_from_structured(decoded, connection)
        return ControlMessage.from_decoded(decoded)

    if isinstance(frame, (bytes, bytearray, memoryview)):
        return DataChunk(
            session_id=connection.session_id,
            data=bytes(frame),
            timestamp=time.time(),
            source=ChunkSource.BINARY,
        )

    return ClassificationFailure(detail=error or "Unclassifiable frame")


def _chunk_from_structured(decoded: dict[str, Any], connection: "Connection") -> ClassifiedFrame:
    """
    Build a DataChunk from a structured data frame.

    Supported for peers that cannot send binary frames, but binary is
    preferred: base64 inflates the payload by a third.
    Declared format metadata is carried through as sent.
    """
    logger.warning(
        "Received audio data as JSON - consider sending as binary",
        connection_id=connection.connection_id,
        session_id=connection.session_id,
    )

    payload = decoded.get("data")
    if not isinstance(payload, str):
        return ClassificationFailure(detail="Structured data frame has no base64 'data' field")

    try:
        data = base64.b64decode(payload)
    except (binascii.Error, ValueError) as e:
        return ClassificationFailure(detail=f"Invalid base64 in 'data' field: {e}")

    return DataChunk(
        session_id=connection.session_id,
        data=data,
        timestamp=time.time(),
        format=decoded.get("format"),
        sample_rate=decoded.get("sampleRate"),
        channels=decoded.get("channels"),
        source=ChunkSource.BASE64,
    )
