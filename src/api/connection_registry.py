"""
Connection Registry
===================
Tracks live collaboration connections and the participant identity each one
has bound by joining. Memory only; nothing here is persisted.

All mutations are synchronous so they never interleave with another
coroutine on the event loop.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from starlette.websockets import WebSocketState

from ..core.logger import StructuredLogger
from ..domain.models.collaboration import ConnectionState, ParticipantIdentity, utc_now


@dataclass(eq=False)
class ClientConnection:
    """Live transport handle for one client"""

    websocket: Any  # starlette WebSocket
    client_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    ip_address: str = "unknown"
    connected_at: datetime = field(default_factory=utc_now)
    state: ConnectionState = ConnectionState.UNJOINED

    # Performance tracking
    messages_sent: int = 0
    messages_received: int = 0
    bytes_sent: int = 0
    last_message_at: float = field(default_factory=time.time)

    # Serializes sends so every peer sees broadcasts in broadcast order
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def is_open(self) -> bool:
        """Transport is ready to carry a frame in both directions"""
        client_state = getattr(self.websocket, "client_state", None)
        application_state = getattr(self.websocket, "application_state", None)
        return (client_state == WebSocketState.CONNECTED and
                application_state == WebSocketState.CONNECTED)

    @property
    def is_joined(self) -> bool:
        return self.state == ConnectionState.JOINED

    async def send_text(self, payload: str) -> None:
        """Send one frame under the per-connection FIFO lock"""
        async with self.send_lock:
            await self.websocket.send_text(payload)
            self.messages_sent += 1
            self.bytes_sent += len(payload)

    def record_message_received(self):
        self.messages_received += 1
        self.last_message_at = time.time()


class ConnectionRegistry:
    """
    Maps live connection -> participant identity.

    A connection appears here only between a successful join and its
    leave/disconnect. remove() pops, so concurrent cleanup paths agree on
    exactly one winner.
    """

    def __init__(self, logger: Optional[StructuredLogger] = None):
        self.logger = logger
        self._identities: Dict[ClientConnection, ParticipantIdentity] = {}
        self.total_registered = 0

    def register(self, connection: ClientConnection, identity: ParticipantIdentity) -> bool:
        """
        Bind an identity to a connection.

        Returns:
            False if the connection was already registered (first binding wins)
        """
        if connection in self._identities:
            if self.logger:
                self.logger.warning("connection_registry.already_registered", {
                    "client_id": connection.client_id,
                    "existing_session_id": self._identities[connection].session_id,
                    "rejected_session_id": identity.session_id
                })
            return False

        self._identities[connection] = identity
        self.total_registered += 1
        return True

    def lookup(self, connection: ClientConnection) -> Optional[ParticipantIdentity]:
        return self._identities.get(connection)

    def remove(self, connection: ClientConnection) -> Optional[ParticipantIdentity]:
        """Unbind a connection; returns the identity it held, or None if absent"""
        return self._identities.pop(connection, None)

    def connections(self) -> List[ClientConnection]:
        """Registered connections, in registration order"""
        return list(self._identities)

    def identities_for(self, project_id: str) -> List[ParticipantIdentity]:
        """Registered identities of one project, in registration order"""
        return [identity for identity in self._identities.values() if identity.project_id == project_id]

    def __len__(self) -> int:
        return len(self._identities)

    def __contains__(self, connection: object) -> bool:
        return connection in self._identities

    def get_stats(self) -> Dict[str, Any]:
        projects = {identity.project_id for identity in self._identities.values()}
        return {
            "registered_connections": len(self._identities),
            "projects": len(projects),
            "total_registered": self.total_registered
        }
