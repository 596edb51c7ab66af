"""
In-Memory Session Store
=======================
Process-local ISessionStore used for tests and single-node development.
Rows are never deleted, matching the soft-deactivation contract of the
PostgreSQL store.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from ..core.exceptions import SessionStoreError
from ..domain.interfaces.session_store import ISessionStore
from ..domain.models.collaboration import CollaborationSession


class InMemorySessionStore(ISessionStore):

    def __init__(self):
        self._sessions: Dict[str, CollaborationSession] = {}
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def insert(self, session: CollaborationSession) -> CollaborationSession:
        if session.id in self._sessions:
            raise SessionStoreError("insert", f"Duplicate session id: {session.id}", session_id=session.id)
        self._sessions[session.id] = session
        return session

    async def update(self, session_id: str, **fields: Any) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        self._sessions[session_id] = session.with_changes(**fields)
        return True

    async def get(self, session_id: str) -> Optional[CollaborationSession]:
        return self._sessions.get(session_id)

    async def list_active_by_project(self, project_id: str) -> List[CollaborationSession]:
        active = [s for s in self._sessions.values() if s.project_id == project_id and s.is_active]
        return sorted(active, key=lambda s: s.created_at)

    async def deactivate_stale(self, cutoff: datetime) -> int:
        stale = [s for s in self._sessions.values() if s.is_active and s.last_activity < cutoff]
        for session in stale:
            self._sessions[session.id] = session.with_changes(is_active=False)
        return len(stale)

    def all_sessions(self) -> List[CollaborationSession]:
        """Every row ever inserted, active or not"""
        return list(self._sessions.values())
