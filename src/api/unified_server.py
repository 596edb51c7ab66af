"""
Unified REST and WebSocket API Server
"""

import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.collaboration_service import CollaborationService
from src.api.response_envelope import error_body, response_body
from src.core.exceptions import SessionStoreError
from src.core.logger import get_logger
from src.domain.interfaces.session_store import ISessionStore
from src.infrastructure.config.config_loader import get_settings_from_working_directory
from src.infrastructure.config.settings import AppSettings
from src.infrastructure.container import Container


def _json_ok(payload: Dict[str, Any], request_id: Optional[str] = None, status: int = 200) -> JSONResponse:
    return JSONResponse(content=response_body(payload, request_id=request_id), status_code=status)


def _json_error(code: str, message: str, status: int = 400, request_id: Optional[str] = None) -> JSONResponse:
    return JSONResponse(content=error_body(code, message, request_id=request_id), status_code=status)


def create_unified_app(settings: Optional[AppSettings] = None,
                       session_store: Optional[ISessionStore] = None) -> FastAPI:
    """
    Creates the collaboration FastAPI application.

    Args:
        settings: Application settings (defaults to config.json + environment)
        session_store: Store to use instead of the configured backend
    """

    # 1. Initialize Dependencies
    settings = settings or get_settings_from_working_directory()
    logger = get_logger("collaboration_server", settings.logging)
    container = Container(settings, logger)

    if session_store is not None:
        service = CollaborationService(session_store, settings.collaboration, logger)
    else:
        service = container.create_collaboration_service()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("server.startup", {"app_name": settings.app_name, "version": settings.version})
        app.state.start_time = time.time()
        await service.start()
        try:
            yield
        finally:
            await service.stop()
            logger.info("server.shutdown_complete", {})

    app = FastAPI(title=settings.app_name, version=settings.version, debug=settings.debug, lifespan=lifespan)
    app.state.container = container
    app.state.collaboration_service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.websocket(settings.collaboration.ws_path)
    async def collaboration_endpoint(websocket: WebSocket):
        """Real-time schema collaboration"""
        await websocket.accept()
        await service.handle_connection(websocket)

    @app.get("/health")
    async def health(_: Request):
        """Liveness probe"""
        return _json_ok({
            "status": "healthy",
            "uptime": time.time() - getattr(app.state, "start_time", time.time()),
            "version": settings.version
        })

    @app.get("/health/ready")
    async def health_ready(_: Request):
        """Readiness probe - store reachable and reaper running"""
        report = await service.health_check()
        checks = {
            "session_store": report["store_healthy"],
            "staleness_reaper": report["reaper_running"]
        }
        ready = report["healthy"]
        return _json_ok({
            "status": "ready" if ready else "not_ready",
            "checks": checks
        }, status=200 if ready else 503)

    @app.get("/api/collaboration/stats")
    async def collaboration_stats(_: Request):
        return _json_ok(service.get_stats())

    @app.get("/api/projects/{project_id}/collaborators")
    async def project_collaborators(project_id: str):
        """Active collaborators of a project, oldest session first"""
        try:
            collaborators = await service.list_collaborators(project_id)
        except SessionStoreError as e:
            logger.warning("server.collaborators_unavailable", {
                "project_id": project_id,
                "error": str(e)
            })
            return _json_error("session_store_unavailable", "Session store unavailable", status=503)

        return _json_ok({
            "project_id": project_id,
            "collaborators": collaborators,
            "count": len(collaborators)
        })

    return app


app = create_unified_app()

if __name__ == "__main__":
    _settings = get_settings_from_working_directory()
    uvicorn.run(app, host=_settings.server.host, port=_settings.server.port)
