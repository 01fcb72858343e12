"""
WebSocket endpoint components.
"""

from stream_gateway.components.endpoints.stream import StreamEndpoint

__all__ = ["StreamEndpoint"]
