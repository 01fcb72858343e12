"""
Inbound frame classification.
"""

from stream_gateway.components.frames.classifier import (
    Frame,
    classify_frame,
    decode_structured,
)

__all__ = ["Frame", "classify_frame", "decode_structured"]
