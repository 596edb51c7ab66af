"""
WebSocket Connection Lifecycle Management
==========================================
Components:
- ConnectionLifecycle: Connection wrap, receive loop, implicit leave on close
"""

from .connection_lifecycle import ConnectionLifecycle

__all__ = ["ConnectionLifecycle"]
