"""
Collaboration Service
=====================
Owns every collaboration component for one process: session store,
connection registry, room broadcaster, message router, connection
lifecycle and staleness reaper. Nothing here is a module-level singleton;
the application builds one service and passes it around.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import psutil
from fastapi import WebSocket

from ..core.logger import StructuredLogger
from ..domain.interfaces.session_store import ISessionStore
from ..infrastructure.config.settings import CollaborationSettings
from .connection_registry import ClientConnection, ConnectionRegistry
from .message_router import MessageRouter
from .room_broadcaster import RoomBroadcaster
from .websocket.handlers.collaboration_handler import CollaborationMessageHandler
from .websocket.lifecycle.connection_lifecycle import ConnectionLifecycle
from .websocket.services.staleness_reaper import StalenessReaper


class CollaborationService:
    """
    Composition of the collaboration core.

    Usage:
        service = CollaborationService(store, settings.collaboration, logger)
        await service.start()
        ...
        await service.handle_connection(websocket)   # per accepted socket
        ...
        await service.stop()
    """

    def __init__(self,
                 session_store: ISessionStore,
                 settings: Optional[CollaborationSettings] = None,
                 logger: Optional[StructuredLogger] = None):
        self.settings = settings or CollaborationSettings()
        self.logger = logger
        self.session_store = session_store

        self.registry = ConnectionRegistry(logger=logger)
        self.broadcaster = RoomBroadcaster(
            send_timeout_seconds=self.settings.send_timeout_seconds,
            logger=logger,
        )
        self.handler = CollaborationMessageHandler(
            session_store=session_store,
            registry=self.registry,
            broadcaster=self.broadcaster,
            logger=logger,
        )
        self.router = MessageRouter(
            handlers=self.handler.handlers(),
            max_message_bytes=self.settings.max_message_bytes,
            logger=logger,
        )
        self.lifecycle = ConnectionLifecycle(
            message_router=self.router,
            handler=self.handler,
            logger=logger,
        )
        self.reaper = StalenessReaper(
            session_store=session_store,
            interval_seconds=self.settings.reaper_interval_seconds,
            stale_after_seconds=self.settings.stale_session_seconds,
            logger=logger,
        )

        self._started = False
        self.started_at: Optional[datetime] = None

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(self):
        """Connect the session store and start the reaper"""
        if self._started:
            return

        await self.session_store.connect()
        await self.reaper.start()
        self._started = True
        self.started_at = datetime.now()

        if self.logger:
            self.logger.info("collaboration_service.started", {
                "ws_path": self.settings.ws_path,
                "store": type(self.session_store).__name__
            })

    async def stop(self):
        """Stop the reaper, deactivate sessions of still-joined connections, close the store"""
        if not self._started:
            return
        self._started = False

        await self.reaper.stop()
        await self.lifecycle.wait_for_cleanups()

        remaining = self.registry.connections()
        for connection in remaining:
            await self.handler.handle_disconnect(connection)

        await self.session_store.close()

        if self.logger:
            self.logger.info("collaboration_service.stopped", {
                "connections_released": len(remaining),
                "total_connections_handled": self.lifecycle.total_connections_handled
            })

    async def handle_connection(self, websocket: WebSocket) -> ClientConnection:
        """Serve one accepted WebSocket until it closes"""
        return await self.lifecycle.handle_client_connection(websocket)

    async def list_collaborators(self, project_id: str) -> List[Dict[str, Any]]:
        """Active sessions of a project as read from the session store"""
        sessions = await self.session_store.list_active_by_project(project_id)
        return [session.to_dict() for session in sessions]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "started": self._started,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "registry": self.registry.get_stats(),
            "rooms": self.broadcaster.get_stats(),
            "router": self.router.get_stats(),
            "handler": self.handler.get_stats(),
            "lifecycle": self.lifecycle.get_stats(),
            "reaper": self.reaper.get_stats(),
            "memory_usage_mb": psutil.Process().memory_info().rss / 1024 / 1024
        }

    async def health_check(self) -> Dict[str, Any]:
        """Ready when started, the store answers and the reaper is running"""
        try:
            store_healthy = await self.session_store.health_check()
        except Exception as e:
            store_healthy = False
            if self.logger:
                self.logger.warning("collaboration_service.store_health_check_failed", {
                    "error": str(e),
                    "error_type": type(e).__name__
                })

        reaper_running = self.reaper.is_running
        return {
            "healthy": self._started and store_healthy and reaper_running,
            "component": "CollaborationService",
            "store_healthy": store_healthy,
            "reaper_running": reaper_running,
            "active_connections": self.lifecycle.active_connections,
            "rooms": self.broadcaster.room_count,
            "timestamp": datetime.now().isoformat()
        }
