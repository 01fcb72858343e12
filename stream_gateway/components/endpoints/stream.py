"""
Streaming WebSocket Endpoint.

Runs one accepted WebSocket for its whole life:
1. Accept and register with the ConnectionManager (welcome frame sent there)
2. Receive loop: every text or binary frame goes to manager.handle_frame
3. Disconnect exactly once, whatever ended the loop
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from fastapi import WebSocket, WebSocketDisconnect

from shared.config.logging import audit_ws_connection, get_logger
from shared.infrastructure.correlation import bind_connection_id, reset_connection_id
from stream_gateway.components.connection.transport import StarletteTransport
from stream_gateway.components.core.constants import WSCloseCode, WSConstants
from stream_gateway.components.core.context import sanitize_log_data

if TYPE_CHECKING:
    from stream_gateway.components.connection.registry import Connection
    from stream_gateway.connection_manager import ConnectionManager

logger = get_logger(__name__)


class StreamEndpoint:
    """
    WebSocket endpoint for streaming peers.

    Usage:
        @app.websocket("/ws/stream")
        async def stream_websocket(websocket: WebSocket):
            await StreamEndpoint(websocket, manager).run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        endpoint_name: str = "/ws/stream",
        accept_timeout: float = WSConstants.ACCEPT_TIMEOUT,
    ):
        self.websocket = websocket
        self.manager = manager
        self.endpoint_name = endpoint_name
        self.accept_timeout = accept_timeout
        self.connection: Connection | None = None

    async def run(self) -> None:
        """
        Main entry point - run the WebSocket endpoint.

        The manager learns about the end of the connection through
        disconnect() in every case; if eviction or shutdown got there
        first that call is a no-op.
        """
        try:
            await asyncio.wait_for(self.websocket.accept(), timeout=self.accept_timeout)
        except asyncio.TimeoutError:
            logger.warning("WebSocket accept timed out", endpoint=self.endpoint_name)
            return
        except Exception as e:
            logger.warning("WebSocket accept failed", endpoint=self.endpoint_name, error=str(e))
            return

        transport = StarletteTransport(self.websocket)
        try:
            self.connection = await self.manager.connect(transport)
        except ConnectionError as e:
            self.log_connect_rejected(str(e))
            await self._close_quietly(transport, WSCloseCode.GOING_AWAY, str(e))
            return

        token = bind_connection_id(self.connection.connection_id)
        close_code: int = WSCloseCode.NORMAL
        close_reason = ""
        try:
            close_code, close_reason = await self._message_loop()
        except WebSocketDisconnect as e:
            close_code, close_reason = e.code, e.reason or ""
        except asyncio.CancelledError:
            close_code, close_reason = WSCloseCode.GOING_AWAY, "Server shutdown"
            raise
        except Exception as e:
            close_code, close_reason = WSCloseCode.SERVER_ERROR, str(e)
            if self.connection.is_connected:
                await self.manager.handle_transport_error(self.connection, e)
            else:
                # Receiving on a transport closed by eviction or shutdown
                logger.debug("Receive loop ended after server-side close", error=str(e))
        finally:
            await self.manager.disconnect(self.connection.connection_id, close_code, close_reason)
            reset_connection_id(token)

    async def _message_loop(self) -> tuple[int, str]:
        """
        Receive frames until the peer disconnects.

        Returns:
            (close_code, close_reason) reported by the transport.
        """
        while True:
            message: dict[str, Any] = await self.websocket.receive()

            if message["type"] == "websocket.disconnect":
                return (
                    message.get("code", WSCloseCode.NORMAL),
                    message.get("reason") or "",
                )

            data = message.get("bytes")
            if data is None:
                data = message.get("text")
            if data is None:
                continue

            await self.manager.handle_frame(self.connection, data)

    async def _close_quietly(
        self, transport: StarletteTransport, code: int, reason: str
    ) -> None:
        try:
            await transport.close(code=code, reason=reason)
        except Exception as e:
            logger.debug("Failed to close rejected WebSocket", error=str(e))

    def log_connect_rejected(self, reason: str) -> None:
        logger.warning(
            "WebSocket connection rejected",
            endpoint=self.endpoint_name,
            peer=sanitize_log_data(str(self.websocket.client)),
            reason=reason,
        )
        audit_ws_connection(
            "CONNECT_REJECTED",
            endpoint=self.endpoint_name,
            reason=reason,
        )
