"""
PostgreSQL Session Store
========================
Async asyncpg-backed persistence for collaboration sessions.

Features:
- Connection pooling (asyncpg)
- JSONB codec for cursor payloads
- Schema bootstrap on connect (same DDL as database/postgres/run_migration_001.py)
- Every backend failure surfaces as SessionStoreError
"""

import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, List, Optional

import asyncpg

from ..core.exceptions import SessionStoreError
from ..core.logger import StructuredLogger
from ..domain.interfaces.session_store import ISessionStore
from ..domain.models.collaboration import CollaborationSession
from ..infrastructure.config.settings import DatabaseSettings


SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS collaboration_sessions (
    id              VARCHAR PRIMARY KEY,
    project_id      VARCHAR NOT NULL,
    user_id         VARCHAR NOT NULL,
    username        TEXT NOT NULL,
    cursor_position JSONB,
    is_active       BOOLEAN NOT NULL DEFAULT TRUE,
    last_activity   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_collaboration_sessions_project_active
    ON collaboration_sessions (project_id, is_active);
CREATE INDEX IF NOT EXISTS idx_collaboration_sessions_active_activity
    ON collaboration_sessions (is_active, last_activity);
"""

_SELECT_COLUMNS = "id, project_id, user_id, username, cursor_position, is_active, last_activity, created_at"

_BACKEND_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


def _affected_rows(status: str) -> int:
    # asyncpg returns the command tag, e.g. "UPDATE 3"
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


async def _init_connection(conn: asyncpg.Connection) -> None:
    await conn.set_type_codec(
        'jsonb',
        encoder=json.dumps,
        decoder=json.loads,
        schema='pg_catalog'
    )


class PostgresSessionStore(ISessionStore):
    """Session store backed by the collaboration_sessions table."""

    def __init__(self, config: Optional[DatabaseSettings] = None, logger: Optional[StructuredLogger] = None):
        self.config = config or DatabaseSettings()
        self.logger = logger
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        """Initialize connection pool and ensure the table exists"""
        if self.pool is not None:
            return

        try:
            self.pool = await asyncpg.create_pool(
                self.config.dsn,
                min_size=self.config.min_pool_size,
                max_size=self.config.max_pool_size,
                command_timeout=self.config.command_timeout,
                init=_init_connection,
                server_settings={'timezone': 'UTC'}
            )
            async with self.pool.acquire() as conn:
                await conn.execute(SCHEMA_DDL)
        except _BACKEND_ERRORS as e:
            self.pool = None
            raise SessionStoreError("connect", f"Failed to connect to session store: {e}") from e

        if self.logger:
            self.logger.info("session_store.connected", {
                "host": self.config.host,
                "port": self.config.port,
                "database": self.config.database
            })

    async def close(self) -> None:
        if self.pool:
            await self.pool.close()
            self.pool = None
            if self.logger:
                self.logger.info("session_store.disconnected")

    @asynccontextmanager
    async def _acquire(self, operation: str, session_id: Optional[str] = None) -> AsyncIterator[asyncpg.Connection]:
        if self.pool is None:
            raise SessionStoreError(operation, "Session store is not connected", session_id=session_id)
        try:
            async with self.pool.acquire() as conn:
                yield conn
        except _BACKEND_ERRORS as e:
            raise SessionStoreError(operation, f"{operation} failed: {e}", session_id=session_id) from e

    @staticmethod
    def _row_to_session(row: Any) -> CollaborationSession:
        return CollaborationSession(
            id=row['id'],
            project_id=row['project_id'],
            user_id=row['user_id'],
            username=row['username'],
            cursor_position=row['cursor_position'],
            is_active=row['is_active'],
            last_activity=row['last_activity'],
            created_at=row['created_at'],
        )

    async def insert(self, session: CollaborationSession) -> CollaborationSession:
        query = """
            INSERT INTO collaboration_sessions
                (id, project_id, user_id, username, cursor_position, is_active, last_activity, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
        """
        async with self._acquire("insert", session.id) as conn:
            await conn.execute(
                query,
                session.id, session.project_id, session.user_id, session.username,
                session.cursor_position, session.is_active, session.last_activity, session.created_at
            )
        return session

    async def update(self, session_id: str, **fields: Any) -> bool:
        unknown = set(fields) - CollaborationSession.MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Immutable or unknown session fields: {sorted(unknown)}")
        if not fields:
            return False

        columns = sorted(fields)
        assignments = ", ".join(f"{column} = ${index}" for index, column in enumerate(columns, start=2))
        query = f"UPDATE collaboration_sessions SET {assignments} WHERE id = $1"

        async with self._acquire("update", session_id) as conn:
            status = await conn.execute(query, session_id, *(fields[column] for column in columns))
        return _affected_rows(status) > 0

    async def get(self, session_id: str) -> Optional[CollaborationSession]:
        query = f"SELECT {_SELECT_COLUMNS} FROM collaboration_sessions WHERE id = $1"
        async with self._acquire("get", session_id) as conn:
            row = await conn.fetchrow(query, session_id)
        return self._row_to_session(row) if row else None

    async def list_active_by_project(self, project_id: str) -> List[CollaborationSession]:
        query = f"""
            SELECT {_SELECT_COLUMNS}
            FROM collaboration_sessions
            WHERE project_id = $1 AND is_active = TRUE
            ORDER BY created_at ASC
        """
        async with self._acquire("list_active_by_project") as conn:
            rows = await conn.fetch(query, project_id)
        return [self._row_to_session(row) for row in rows]

    async def deactivate_stale(self, cutoff: datetime) -> int:
        query = """
            UPDATE collaboration_sessions
            SET is_active = FALSE
            WHERE is_active = TRUE AND last_activity < $1
        """
        async with self._acquire("deactivate_stale") as conn:
            status = await conn.execute(query, cutoff)
        return _affected_rows(status)

    async def health_check(self) -> bool:
        try:
            async with self._acquire("health_check") as conn:
                await conn.fetchval("SELECT 1")
            return True
        except SessionStoreError:
            return False
