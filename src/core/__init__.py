"""
Core module for the schema collaboration service
"""

from .exceptions import CollaborationError, MessageValidationError, SessionStoreError
from .logger import StructuredLogger, get_logger

__all__ = [
    'CollaborationError',
    'MessageValidationError',
    'SessionStoreError',
    'StructuredLogger',
    'get_logger',
]
