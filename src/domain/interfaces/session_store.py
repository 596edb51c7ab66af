"""
Session Store Interface - Port for durable collaboration sessions
=================================================================
Abstract interface the collaboration core uses to persist session rows.
Implementations raise SessionStoreError for any backend failure.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, Optional

from ..models.collaboration import CollaborationSession


class ISessionStore(ABC):
    """
    Durable record of who is connected to which project.

    Each row is written only by its owning connection's handler, except
    deactivate_stale which flips is_active on many rows at once.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open backing resources (pools, schema)"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release backing resources"""
        pass

    @abstractmethod
    async def insert(self, session: CollaborationSession) -> CollaborationSession:
        """Persist a new session row"""
        pass

    @abstractmethod
    async def update(self, session_id: str, **fields: Any) -> bool:
        """
        Update mutable columns of one session.

        Args:
            session_id: Session to update
            **fields: Subset of is_active, last_activity, cursor_position

        Returns:
            True if a row was updated
        """
        pass

    async def deactivate(self, session_id: str) -> bool:
        """Clear the active flag of one session"""
        return await self.update(session_id, is_active=False)

    @abstractmethod
    async def get(self, session_id: str) -> Optional[CollaborationSession]:
        """Fetch one session by id"""
        pass

    @abstractmethod
    async def list_active_by_project(self, project_id: str) -> List[CollaborationSession]:
        """Active sessions of a project, oldest first"""
        pass

    @abstractmethod
    async def deactivate_stale(self, cutoff: datetime) -> int:
        """
        Deactivate every active session whose last activity is before cutoff.

        Returns:
            Number of sessions deactivated
        """
        pass

    async def health_check(self) -> bool:
        """True when the backend answers"""
        return True
