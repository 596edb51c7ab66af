"""
WebSocket Services
==================
Background services for the collaboration WebSocket.

Modules:
- staleness_reaper: Periodic deactivation of silent sessions
"""

from .staleness_reaper import StalenessReaper

__all__ = ['StalenessReaper']
