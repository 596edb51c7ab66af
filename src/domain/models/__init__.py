"""
Domain Models - Core Business Entities
======================================
Pure data models representing business concepts.
"""

from .collaboration import CollaborationSession, ConnectionState, ParticipantIdentity, utc_now

__all__ = [
    'CollaborationSession', 'ConnectionState', 'ParticipantIdentity', 'utc_now'
]
