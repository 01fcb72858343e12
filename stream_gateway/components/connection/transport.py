"""
Transport boundary.

The core only needs a message-oriented, bidirectional connection:
frames out, a liveness probe, close, and the parameters the peer sent
with its handshake. Transport describes that contract;
StarletteTransport adapts a FastAPI/Starlette WebSocket to it.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Mapping, Protocol, runtime_checkable

from starlette.websockets import WebSocketState

from stream_gateway.components.core.constants import MessageType, WSCloseCode, now_ms

if TYPE_CHECKING:
    from fastapi import WebSocket


@runtime_checkable
class Transport(Protocol):
    """Send/close capability of one accepted connection."""

    @property
    def handshake_params(self) -> Mapping[str, str]:
        """Query parameters supplied by the peer at handshake time."""
        ...

    @property
    def is_open(self) -> bool:
        """Whether the transport can currently be written to."""
        ...

    async def send_text(self, data: str) -> None: ...

    async def send_bytes(self, data: bytes) -> None: ...

    async def ping(self) -> None:
        """Send a liveness probe. The answer arrives as an inbound frame."""
        ...

    async def close(self, code: int = WSCloseCode.NORMAL, reason: str = "") -> None: ...


def is_ws_connected(ws: "WebSocket") -> bool:
    """
    Check if WebSocket is in connected state before sending.

    Starlette WebSockets have limited state visibility:
    - CONNECTING: Initial state (not observable here)
    - CONNECTED: Active connection
    - DISCONNECTED: Closed connection

    Transitional states are not exposed, so connections may appear
    connected briefly after disconnect initiated.
    """
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class StarletteTransport:
    """
    Transport over an accepted Starlette WebSocket.

    ASGI does not expose protocol-level ping frames to the application,
    so the probe is an application message: {"type": "ping", "timestamp": ms}.
    Peers answer with "pong" or {"type": "pong"}.
    """

    def __init__(self, websocket: "WebSocket") -> None:
        self._websocket = websocket

    @property
    def websocket(self) -> "WebSocket":
        return self._websocket

    @property
    def handshake_params(self) -> Mapping[str, str]:
        return self._websocket.query_params

    @property
    def is_open(self) -> bool:
        return is_ws_connected(self._websocket)

    @property
    def peer(self) -> str:
        """host:port of the remote end, for logging."""
        client = self._websocket.client
        if client is None:
            return "unknown"
        return f"{client.host}:{client.port}"

    async def send_text(self, data: str) -> None:
        await self._websocket.send_text(data)

    async def send_bytes(self, data: bytes) -> None:
        await self._websocket.send_bytes(data)

    async def ping(self) -> None:
        await self._websocket.send_text(
            json.dumps({"type": MessageType.PING, "timestamp": now_ms()})
        )

    async def close(self, code: int = WSCloseCode.NORMAL, reason: str = "") -> None:
        if self._websocket.application_state == WebSocketState.DISCONNECTED:
            return
        await self._websocket.close(code=int(code), reason=reason)
