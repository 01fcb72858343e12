"""
Stream Gateway Core Module.

- connection/: outbound delivery and shutdown
"""

from stream_gateway.core.connection import Dispatcher, serialize_payload

__all__ = ["Dispatcher", "serialize_payload"]
