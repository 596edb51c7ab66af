"""
Shared pytest fixtures for collaboration tests
==============================================

Provides a fully wired CollaborationService backed by the in-memory
session store. Test doubles live in tests/support.py.
"""

import pytest

from src.api.collaboration_service import CollaborationService
from src.database.memory_session_store import InMemorySessionStore
from src.infrastructure.config.settings import CollaborationSettings


@pytest.fixture
def memory_store():
    return InMemorySessionStore()


@pytest.fixture
def collaboration_settings():
    return CollaborationSettings(reaper_interval_seconds=30.0, stale_session_seconds=300.0)


@pytest.fixture
def service(memory_store, collaboration_settings):
    """Service with every component wired; not started (no reaper task)"""
    return CollaborationService(memory_store, collaboration_settings)
