"""
Core Exceptions - Schema Collaboration
======================================
Centralized exception definitions for the collaboration service.
"""

from typing import List, Optional


class CollaborationError(Exception):
    """Base exception for collaboration service errors."""
    pass


class SessionStoreError(CollaborationError):
    """
    Raised when the durable session store fails a read or write.

    Handlers catch this and keep live collaboration running; only the
    persistence side degrades.
    """
    def __init__(self, operation: str, message: str = None, session_id: Optional[str] = None):
        self.operation = operation
        self.session_id = session_id
        self.message = message or f"Session store operation failed: {operation}"
        super().__init__(self.message)


class MessageValidationError(CollaborationError):
    """
    Raised when an inbound WebSocket frame cannot be parsed into a known message.

    Never surfaced to the client; the router logs it and drops the frame.
    """
    def __init__(self, errors: List[str], message_type: Optional[str] = None):
        self.errors = errors
        self.message_type = message_type
        self.message = "; ".join(errors) if errors else "Invalid message"
        super().__init__(self.message)
