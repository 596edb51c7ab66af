"""
WebSocket API Module
====================
Collaboration WebSocket components.

Architecture:
- handlers/: Collaboration message handler
- lifecycle/: Connection lifecycle (receive loop, implicit leave)
- services/: Background services (staleness reaper)
"""

__all__ = []
