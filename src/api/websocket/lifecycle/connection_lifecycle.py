"""
ConnectionLifecycle - Collaboration Connection Management
=========================================================
Orchestrates one WebSocket connection: wrap, receive loop, disconnect.

Responsibilities:
- Wrap an accepted transport in a ClientConnection
- Feed every frame, text or binary, in arrival order to the MessageRouter
- Run the implicit leave exactly once however the connection ends,
  including when the serving task is cancelled

The route accepts the socket; this class never closes it.
"""

import asyncio
from typing import Any, Dict, Set, Union

from starlette.websockets import WebSocketDisconnect
from websockets.exceptions import ConnectionClosed

from ...connection_registry import ClientConnection
from ...message_router import MessageRouter
from ..handlers.collaboration_handler import CollaborationMessageHandler


class ConnectionLifecycle:
    """
    Orchestrates collaboration connection lifecycle.

    Lifecycle stages:
    1. Accepted transport → ClientConnection (state UNJOINED)
    2. Message loop → router (parse → gate → handler)
    3. Disconnect / error / cancellation → handler.handle_disconnect (implicit leave)

    Dependencies:
    - message_router: Routes messages to the collaboration handler
    - handler: Owns the implicit leave
    - logger: Diagnostics logging
    """

    def __init__(self,
                 message_router: MessageRouter,
                 handler: CollaborationMessageHandler,
                 logger=None):
        self.message_router = message_router
        self.handler = handler
        self.logger = logger

        # implicit leaves in flight
        self._cleanup_tasks: Set[asyncio.Task] = set()

        # Statistics
        self.active_connections = 0
        self.total_connections_handled = 0
        self.total_messages_processed = 0
        self.cancelled_connections = 0

    def _extract_client_ip(self, websocket: Any) -> str:
        client = getattr(websocket, "client", None)
        host = getattr(client, "host", None)
        return host or "unknown"

    async def handle_client_connection(self, websocket: Any) -> ClientConnection:
        """
        Serve one accepted WebSocket until it closes.

        Args:
            websocket: Accepted starlette WebSocket

        Returns:
            The ClientConnection that was served (state CLOSED on return)

        Raises:
            asyncio.CancelledError: re-raised after the implicit leave has been
                scheduled; the leave itself still runs to completion
        """
        connection = ClientConnection(websocket=websocket, ip_address=self._extract_client_ip(websocket))
        self.active_connections += 1
        self.total_connections_handled += 1

        if self.logger:
            self.logger.info("websocket_lifecycle.client_connected", {
                "client_id": connection.client_id,
                "ip_address": connection.ip_address
            })

        try:
            await self._handle_client_messages(connection)

        except asyncio.CancelledError:
            self.cancelled_connections += 1
            if self.logger:
                self.logger.info("websocket_lifecycle.client_cancelled", {
                    "client_id": connection.client_id,
                    "messages_received": connection.messages_received
                })
            raise

        except Exception as e:
            if self.logger:
                self.logger.error("websocket_lifecycle.unexpected_error", {
                    "client_id": connection.client_id,
                    "error": str(e),
                    "error_type": type(e).__name__
                })
        finally:
            self.active_connections -= 1
            await self._run_cleanup(connection)

        return connection

    async def _receive_frame(self, connection: ClientConnection) -> Union[str, bytes]:
        message = await connection.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))

        text = message.get("text")
        return text if text is not None else (message.get("bytes") or b"")

    async def _handle_client_messages(self, connection: ClientConnection):
        try:
            while True:
                payload = await self._receive_frame(connection)
                connection.record_message_received()
                await self.message_router.route_message(connection, payload)
                self.total_messages_processed += 1
        except (WebSocketDisconnect, ConnectionClosed) as e:
            if self.logger:
                self.logger.info("websocket_lifecycle.client_disconnected", {
                    "client_id": connection.client_id,
                    "close_code": getattr(e, "code", None),
                    "messages_received": connection.messages_received
                })

    async def _run_cleanup(self, connection: ClientConnection):
        task = asyncio.ensure_future(self._cleanup_connection(connection))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)
        # shield: a cancellation here stops the wait, not the departure
        await asyncio.shield(task)

    async def _cleanup_connection(self, connection: ClientConnection):
        try:
            await self.handler.handle_disconnect(connection)
        except Exception as e:
            if self.logger:
                self.logger.error("websocket_lifecycle.cleanup_error", {
                    "client_id": connection.client_id,
                    "error": str(e),
                    "error_type": type(e).__name__
                })

    async def wait_for_cleanups(self):
        """Wait until every scheduled implicit leave has finished"""
        while self._cleanup_tasks:
            await asyncio.gather(*list(self._cleanup_tasks), return_exceptions=True)

    @property
    def pending_cleanups(self) -> int:
        return len(self._cleanup_tasks)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "active_connections": self.active_connections,
            "total_connections_handled": self.total_connections_handled,
            "total_messages_processed": self.total_messages_processed,
            "cancelled_connections": self.cancelled_connections,
            "pending_cleanups": self.pending_cleanups
        }
