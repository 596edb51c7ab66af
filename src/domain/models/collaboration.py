"""
Collaboration Models
====================
Pure data models for real-time schema collaboration.

Provides:
- CollaborationSession: durable record of one user's participation in a project room
- ParticipantIdentity: identity bound to a live connection after it joins
- ConnectionState: per-connection protocol state machine
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionState(Enum):
    """
    Protocol state of one live connection.

    State Machine:
        [UNJOINED] ──join──► [JOINED] ──leave / close──► [CLOSED]
             │                                              ▲
             └──────────────────close──────────────────────┘
    """
    UNJOINED = "unjoined"
    JOINED = "joined"
    CLOSED = "closed"


@dataclass(frozen=True)
class ParticipantIdentity:
    """Who a joined connection is, and which session row it owns."""
    project_id: str
    user_id: str
    username: str
    session_id: str


@dataclass
class CollaborationSession:
    """
    Durable session row.

    Sessions are soft-deactivated only: leave, disconnect and the reaper clear
    is_active, nothing deletes the row.
    """
    id: str
    project_id: str
    user_id: str
    username: str
    is_active: bool = True
    cursor_position: Optional[Any] = None
    last_activity: datetime = field(default_factory=utc_now)
    created_at: datetime = field(default_factory=utc_now)

    # Columns a handler may change after insert
    MUTABLE_FIELDS = frozenset({"is_active", "last_activity", "cursor_position"})

    def with_changes(self, **fields: Any) -> "CollaborationSession":
        unknown = set(fields) - self.MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Immutable or unknown session fields: {sorted(unknown)}")
        return replace(self, **fields)

    def identity(self) -> ParticipantIdentity:
        return ParticipantIdentity(
            project_id=self.project_id,
            user_id=self.user_id,
            username=self.username,
            session_id=self.id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "username": self.username,
            "is_active": self.is_active,
            "cursor_position": self.cursor_position,
            "last_activity": self.last_activity.isoformat(),
            "created_at": self.created_at.isoformat(),
        }
