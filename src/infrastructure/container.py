"""
Composition root
================
Builds the session store and the collaboration service from AppSettings.
The container is created once by the application factory and only assembles
objects; nothing reaches it through a global.
"""

from typing import Any, Callable, Dict, List

from ..api.collaboration_service import CollaborationService
from ..core.logger import StructuredLogger
from ..database.memory_session_store import InMemorySessionStore
from ..database.session_store import PostgresSessionStore
from ..domain.interfaces.session_store import ISessionStore
from ..infrastructure.config.settings import AppSettings, SessionStoreBackend


class Container:
    """
    Composition root for the collaboration service.

    Every create_* method returns a singleton: the store and the service
    are built once per container and shared by all callers.
    """

    def __init__(self, settings: AppSettings, logger: StructuredLogger):
        self.settings = settings
        self.logger = logger
        self._instances: Dict[str, Any] = {}

        errors = self.validate_configuration()
        if errors:
            raise RuntimeError(f"Configuration validation failed: {'; '.join(errors)}")

        self.logger.info("container.ready", {
            "session_store_backend": settings.database.backend.value
        })

    def _singleton(self, name: str, build: Callable[[], Any]) -> Any:
        instance = self._instances.get(name)
        if instance is not None:
            return instance

        try:
            instance = build()
        except Exception as e:
            self.logger.error("container.build_failed", {
                "component": name,
                "error": str(e),
                "error_type": type(e).__name__
            })
            raise RuntimeError(f"Failed to build '{name}': {e}") from e

        self._instances[name] = instance
        self.logger.debug("container.built", {"component": name, "type": type(instance).__name__})
        return instance

    def create_session_store(self) -> ISessionStore:
        """Session store for the configured backend (DB_BACKEND)"""
        builders: Dict[SessionStoreBackend, Callable[[], ISessionStore]] = {
            SessionStoreBackend.POSTGRES: lambda: PostgresSessionStore(self.settings.database, self.logger),
            SessionStoreBackend.MEMORY: InMemorySessionStore,
        }
        return self._singleton("session_store", builders[self.settings.database.backend])

    def create_collaboration_service(self) -> CollaborationService:
        return self._singleton(
            "collaboration_service",
            lambda: CollaborationService(
                session_store=self.create_session_store(),
                settings=self.settings.collaboration,
                logger=self.logger,
            ),
        )

    def validate_configuration(self) -> List[str]:
        """Cross-field checks pydantic cannot express per section; returns error strings."""
        errors = []
        collaboration = self.settings.collaboration
        if collaboration.stale_session_seconds <= collaboration.reaper_interval_seconds:
            errors.append("stale_session_seconds must exceed reaper_interval_seconds")
        if collaboration.max_message_bytes <= 0:
            errors.append("max_message_bytes must be positive")
        return errors
