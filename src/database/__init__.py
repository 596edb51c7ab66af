"""
Database package for collaboration session persistence
"""

from .memory_session_store import InMemorySessionStore
from .session_store import PostgresSessionStore, SCHEMA_DDL

__all__ = ['InMemorySessionStore', 'PostgresSessionStore', 'SCHEMA_DDL']
