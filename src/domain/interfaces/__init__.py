"""
Domain Interfaces - Ports for External Dependencies
==================================================
Abstract interfaces that define how domain layer communicates with infrastructure.
"""

from .session_store import ISessionStore

__all__ = [
    'ISessionStore'
]
