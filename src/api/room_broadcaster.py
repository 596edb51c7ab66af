"""
Room Broadcaster
================
Per-project rooms of live connections and fan-out of outbound messages.

A room exists only while it has members. Membership changes are
synchronous; broadcasts snapshot the member list, serialize the message
once, and deliver to every ready member concurrently. One peer failing to
receive never affects the others or the caller; a send that misses its
deadline counts as a failed delivery.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

from starlette.websockets import WebSocketDisconnect
from websockets.exceptions import ConnectionClosed

from ..core.logger import StructuredLogger
from .connection_registry import ClientConnection
from .protocol import ProtocolModel, encode_message


class RoomBroadcaster:
    """
    Rooms keyed by project id, members kept in join order.

    Delivery order per connection follows broadcast order because each
    ClientConnection serializes its own sends.
    """

    def __init__(self,
                 send_timeout_seconds: float = 1.0,
                 logger: Optional[StructuredLogger] = None):
        if send_timeout_seconds <= 0:
            raise ValueError("send_timeout_seconds must be positive")
        self.send_timeout_seconds = send_timeout_seconds
        self.logger = logger
        # dict-as-ordered-set: connection -> None
        self._rooms: Dict[str, Dict[ClientConnection, None]] = {}

        # Statistics
        self.total_broadcasts = 0
        self.total_deliveries = 0
        self.failed_deliveries = 0
        self.timed_out_deliveries = 0
        self.skipped_not_ready = 0
        self._last_broadcast_at: Optional[float] = None

    # === MEMBERSHIP ===

    def join(self, project_id: str, connection: ClientConnection) -> None:
        room = self._rooms.setdefault(project_id, {})
        room[connection] = None

    def leave(self, project_id: str, connection: ClientConnection) -> bool:
        """Remove a member; the room is dropped as soon as it is empty"""
        room = self._rooms.get(project_id)
        if room is None or connection not in room:
            return False

        del room[connection]
        if not room:
            del self._rooms[project_id]
            if self.logger:
                self.logger.debug("room_broadcaster.room_closed", {"project_id": project_id})
        return True

    def members(self, project_id: str) -> List[ClientConnection]:
        return list(self._rooms.get(project_id, ()))

    def has_room(self, project_id: str) -> bool:
        return project_id in self._rooms

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    # === DELIVERY ===

    async def broadcast(self,
                        project_id: str,
                        message: ProtocolModel,
                        exclude: Optional[ClientConnection] = None) -> int:
        """
        Send a message to every member of a project's room.

        Args:
            project_id: Target room
            message: Outbound protocol model
            exclude: Member that must not receive it (usually the sender)

        Returns:
            Number of members the message was delivered to
        """
        recipients = [c for c in self.members(project_id) if c is not exclude]
        if not recipients:
            return 0

        payload = encode_message(message)
        self.total_broadcasts += 1
        self._last_broadcast_at = time.time()

        results = await asyncio.gather(*(self._deliver(c, payload) for c in recipients))
        delivered = sum(1 for ok in results if ok)

        if self.logger:
            self.logger.debug("room_broadcaster.broadcast", {
                "project_id": project_id,
                "message_type": message.type,
                "recipients": len(recipients),
                "delivered": delivered
            })
        return delivered

    async def send(self, connection: ClientConnection, message: ProtocolModel) -> bool:
        """Private delivery to a single connection"""
        return await self._deliver(connection, encode_message(message))

    async def _deliver(self, connection: ClientConnection, payload: str) -> bool:
        if not connection.is_open:
            self.skipped_not_ready += 1
            return False

        try:
            await asyncio.wait_for(connection.send_text(payload), timeout=self.send_timeout_seconds)
            self.total_deliveries += 1
            return True

        except asyncio.TimeoutError:
            # Slow consumer: this frame is lost for it, the sender moves on
            self.failed_deliveries += 1
            self.timed_out_deliveries += 1
            if self.logger:
                self.logger.warning("room_broadcaster.send_timeout", {
                    "client_id": connection.client_id,
                    "timeout_seconds": self.send_timeout_seconds
                })
            return False

        except (ConnectionClosed, WebSocketDisconnect) as e:
            # Peer went away between the readiness check and the send
            self.failed_deliveries += 1
            if self.logger:
                self.logger.debug("room_broadcaster.send_skipped_connection_closed", {
                    "client_id": connection.client_id,
                    "close_code": getattr(e, "code", None)
                })
            return False

        except RuntimeError as e:
            # Starlette raises RuntimeError when sending after close
            self.failed_deliveries += 1
            if self.logger:
                self.logger.debug("room_broadcaster.send_after_close", {
                    "client_id": connection.client_id,
                    "error": str(e)
                })
            return False

        except Exception as e:
            self.failed_deliveries += 1
            if self.logger:
                self.logger.warning("room_broadcaster.send_failed", {
                    "client_id": connection.client_id,
                    "error": str(e),
                    "error_type": type(e).__name__
                })
            return False

    def get_stats(self) -> Dict[str, Any]:
        return {
            "rooms": len(self._rooms),
            "members": sum(len(room) for room in self._rooms.values()),
            "total_broadcasts": self.total_broadcasts,
            "total_deliveries": self.total_deliveries,
            "failed_deliveries": self.failed_deliveries,
            "timed_out_deliveries": self.timed_out_deliveries,
            "skipped_not_ready": self.skipped_not_ready,
            "last_broadcast_at": self._last_broadcast_at
        }
