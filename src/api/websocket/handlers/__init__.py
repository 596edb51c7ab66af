"""
WebSocket Message Handlers
===========================
Handlers for the collaboration message types.

- CollaborationMessageHandler: join, leave, cursor, update, heartbeat and
  the implicit leave on disconnect
"""

from .collaboration_handler import CollaborationMessageHandler

__all__ = ["CollaborationMessageHandler"]
