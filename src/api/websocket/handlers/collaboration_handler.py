"""
CollaborationMessageHandler - Real-time Schema Collaboration
============================================================
Handles the collaboration message types routed by MessageRouter:
join, leave, cursor, update, heartbeat, plus the implicit leave that runs
when a transport closes.

Responsibilities:
- Create and deactivate durable session rows
- Bind identities in the ConnectionRegistry
- Maintain room membership and fan out presence, cursor and schema updates

Durable-store failures never stop live collaboration. They are logged and
the in-memory side (registry, rooms, broadcasts) proceeds without them.
"""

import uuid
from typing import Any, Dict, List, Optional

from ....core.exceptions import SessionStoreError
from ....core.logger import StructuredLogger
from ....domain.interfaces.session_store import ISessionStore
from ....domain.models.collaboration import (
    CollaborationSession,
    ConnectionState,
    ParticipantIdentity,
    utc_now,
)
from ...connection_registry import ClientConnection, ConnectionRegistry
from ...message_router import MessageHandler
from ...protocol import (
    CursorMessage,
    CursorUpdateMessage,
    HeartbeatMessage,
    JoinedMessage,
    JoinMessage,
    LeaveMessage,
    MessageType,
    SchemaUpdateMessage,
    UpdateMessage,
    UserJoinedMessage,
    UserLeftMessage,
    UserSummary,
    user_summary,
)
from ...room_broadcaster import RoomBroadcaster


class CollaborationMessageHandler:
    """
    Handles collaboration messages for joined (or joining) connections.

    Join flow:
    1. Client sends JOIN → session row inserted → registered → added to room
    2. Active users re-read from the store (falls back to the live room)
    3. USER_JOINED broadcast to the others, JOINED sent to the joiner

    Departure (LEAVE or transport close) runs exactly once per connection:
    the registry pop decides which path performs it.

    Dependencies:
    - session_store: Durable session rows
    - registry: Connection -> identity map
    - broadcaster: Project rooms and fan-out
    """

    def __init__(self,
                 session_store: ISessionStore,
                 registry: ConnectionRegistry,
                 broadcaster: RoomBroadcaster,
                 logger: Optional[StructuredLogger] = None):
        self.session_store = session_store
        self.registry = registry
        self.broadcaster = broadcaster
        self.logger = logger

        # Statistics
        self.joins = 0
        self.departures = 0
        self.store_failures = 0
        self.roster_fallbacks = 0

    def handlers(self) -> Dict[MessageType, MessageHandler]:
        """Handler table for MessageRouter"""
        return {
            MessageType.JOIN: self.handle_join,
            MessageType.LEAVE: self.handle_leave,
            MessageType.CURSOR: self.handle_cursor,
            MessageType.UPDATE: self.handle_update,
            MessageType.HEARTBEAT: self.handle_heartbeat,
        }

    async def handle_join(self, connection: ClientConnection, message: JoinMessage) -> None:
        """
        Handle join request.

        Message format:
        {
            "type": "join",
            "projectId": "p1",
            "userId": "u-alice",
            "username": "alice"
        }

        Joiner receives:
        {"type": "joined", "sessionId": "...", "activeUsers": [{"userId": ..., "username": ...}]}

        Other room members receive:
        {"type": "user-joined", "user": {...}, "activeUsers": [...]}
        """
        session = CollaborationSession(
            id=str(uuid.uuid4()),
            project_id=message.project_id,
            user_id=message.user_id,
            username=message.username,
        )

        persisted = True
        try:
            await self.session_store.insert(session)
        except SessionStoreError as e:
            persisted = False
            self._store_failed("insert", e, session.id)

        identity = session.identity()
        if not self.registry.register(connection, identity):
            return
        self.broadcaster.join(identity.project_id, connection)
        connection.state = ConnectionState.JOINED
        self.joins += 1

        active_users = await self._active_users(identity.project_id, persisted)
        joiner = user_summary(identity.user_id, identity.username)

        await self.broadcaster.broadcast(
            identity.project_id,
            UserJoinedMessage(user=joiner, active_users=active_users),
            exclude=connection,
        )
        await self.broadcaster.send(
            connection,
            JoinedMessage(session_id=identity.session_id, active_users=active_users),
        )

        if self.logger:
            self.logger.info("collaboration.user_joined", {
                "client_id": connection.client_id,
                "project_id": identity.project_id,
                "user_id": identity.user_id,
                "session_id": identity.session_id,
                "active_users": len(active_users),
                "persisted": persisted
            })

    async def handle_leave(self, connection: ClientConnection, message: LeaveMessage) -> None:
        await self._depart(connection, reason="leave")

    async def handle_cursor(self, connection: ClientConnection, message: CursorMessage) -> None:
        identity = self.registry.lookup(connection)
        if identity is None:
            return

        await self.broadcaster.broadcast(
            identity.project_id,
            CursorUpdateMessage(user_id=identity.user_id, username=identity.username, cursor=message.data),
            exclude=connection,
        )

    async def handle_update(self, connection: ClientConnection, message: UpdateMessage) -> None:
        identity = self.registry.lookup(connection)
        if identity is None:
            return

        await self.broadcaster.broadcast(
            identity.project_id,
            SchemaUpdateMessage(user_id=identity.user_id, username=identity.username, changes=message.data),
            exclude=connection,
        )

    async def handle_heartbeat(self, connection: ClientConnection, message: HeartbeatMessage) -> None:
        """Refresh last_activity, and the stored cursor when the heartbeat carries one"""
        identity = self.registry.lookup(connection)
        if identity is None:
            return

        fields: Dict[str, Any] = {"last_activity": utc_now()}
        if message.has_cursor:
            fields["cursor_position"] = message.cursor

        try:
            await self.session_store.update(identity.session_id, **fields)
        except SessionStoreError as e:
            self._store_failed("heartbeat", e, identity.session_id)

    async def handle_disconnect(self, connection: ClientConnection) -> None:
        """Implicit leave when the transport closes or errors, in any state"""
        if connection.state == ConnectionState.UNJOINED:
            connection.state = ConnectionState.CLOSED
            return
        await self._depart(connection, reason="disconnect")

    async def _depart(self, connection: ClientConnection, reason: str) -> None:
        # Registry pop is the exactly-once guard shared by leave and disconnect
        identity = self.registry.remove(connection)
        connection.state = ConnectionState.CLOSED
        if identity is None:
            return

        self.broadcaster.leave(identity.project_id, connection)
        self.departures += 1

        try:
            await self.session_store.deactivate(identity.session_id)
        except SessionStoreError as e:
            self._store_failed("deactivate", e, identity.session_id)

        await self.broadcaster.broadcast(
            identity.project_id,
            UserLeftMessage(user=user_summary(identity.user_id, identity.username)),
        )

        if self.logger:
            self.logger.info("collaboration.user_left", {
                "client_id": connection.client_id,
                "project_id": identity.project_id,
                "user_id": identity.user_id,
                "session_id": identity.session_id,
                "reason": reason
            })

    async def _active_users(self, project_id: str, use_store: bool) -> List[UserSummary]:
        if use_store:
            try:
                sessions = await self.session_store.list_active_by_project(project_id)
                return [user_summary(s.user_id, s.username) for s in sessions]
            except SessionStoreError as e:
                self._store_failed("list_active", e)

        self.roster_fallbacks += 1
        return [user_summary(i.user_id, i.username) for i in self._live_roster(project_id)]

    def _live_roster(self, project_id: str) -> List[ParticipantIdentity]:
        roster = []
        for member in self.broadcaster.members(project_id):
            identity = self.registry.lookup(member)
            if identity is not None:
                roster.append(identity)
        return roster

    def _store_failed(self, operation: str, error: SessionStoreError, session_id: Optional[str] = None):
        self.store_failures += 1
        if self.logger:
            self.logger.warning("collaboration.store_error", {
                "operation": operation,
                "session_id": session_id or error.session_id,
                "error": str(error)
            })

    def get_stats(self) -> Dict[str, Any]:
        return {
            "joins": self.joins,
            "departures": self.departures,
            "store_failures": self.store_failures,
            "roster_fallbacks": self.roster_fallbacks
        }
