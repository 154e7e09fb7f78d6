"""Peer Rendezvous Service

Clients POST their address under a session id and GET the list of live peer
addresses. The registry is built in the app factory (or during startup) and
stored on ``app.state``; handlers never reach for a module-level registry.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.infrastructure.config import ConfigSchema, get_config
from src.infrastructure.logging.logging_config import get_logger
from src.services.registry.peer_registry import PeerRegistry
from src.shared.resilience.exceptions import (
    REQUIRE_FIELDS_MESSAGE,
    StorageError,
    ValidationError,
)

logger = get_logger("rendezvous_service")


class RegisterRequest(BaseModel):
    """Request body for peer registration"""

    address: Optional[str] = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class PeersResponse(BaseModel):
    """Response model for peer listing"""

    peers: List[str]


class StatusResponse(BaseModel):
    """Response model for a successful registration"""

    status: str


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def sweep_expired_sessions(app: FastAPI, interval_seconds: int) -> None:
    """Background task that prunes the session index on a fixed cadence"""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            app.state.registry.sweep()
        except StorageError as e:
            logger.error(f"Sweep task storage error: {e}")


def create_app(
    registry: Optional[PeerRegistry] = None,
    config: Optional[ConfigSchema] = None,
) -> FastAPI:
    """Create the rendezvous FastAPI application.

    Args:
        registry: Registry to serve. When omitted it is built from
            configuration at startup.
        config: Configuration to use instead of the global config file.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan"""
        logger.info("Starting Peer Rendezvous Service")
        settings = config or get_config().config

        if getattr(app.state, "registry", None) is None:
            logger.info("Initializing peer registry...")
            app.state.registry = PeerRegistry.from_config(settings)
        logger.info(
            f"Peer registry ready (ttl={app.state.registry.ttl_seconds}s, "
            f"backend={app.state.registry.store.backend})"
        )

        sweep_task = None
        if settings.sweep_interval_seconds > 0:
            sweep_task = asyncio.create_task(
                sweep_expired_sessions(app, settings.sweep_interval_seconds)
            )
            logger.info(
                f"Background sweep every {settings.sweep_interval_seconds}s enabled"
            )

        try:
            yield
        finally:
            logger.info("Shutting down Peer Rendezvous Service")
            if sweep_task is not None:
                sweep_task.cancel()
                try:
                    await sweep_task
                except asyncio.CancelledError:
                    pass
            logger.info("Rendezvous service shutdown complete")

    app = FastAPI(
        title="Peer Rendezvous Service",
        description="Session-keyed peer address registry with TTL expiry",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.registry = registry

    @app.exception_handler(RequestValidationError)
    async def invalid_body_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed bodies get the same rejection as missing fields"""
        logger.debug(f"Rejected malformed request to {request.url.path}: {exc}")
        return _error(400, REQUIRE_FIELDS_MESSAGE)

    @app.get("/", response_model=PeersResponse)
    async def list_peers():
        """List the addresses of all live peers"""
        try:
            peers = app.state.registry.list_peers()
        except StorageError as e:
            logger.error(f"Error retrieving peers: {e}")
            return _error(500, str(e))

        logger.debug(f"Peers: {peers}")
        return PeersResponse(peers=peers)

    @app.post("/", response_model=StatusResponse)
    async def register_peer(payload: Optional[RegisterRequest] = None):
        """Register or refresh a peer address under its session id"""
        payload = payload or RegisterRequest()
        try:
            app.state.registry.register(payload.session_id, payload.address)
        except ValidationError as e:
            return _error(400, e.message)
        except StorageError as e:
            logger.error(f"Error registering session {payload.session_id}: {e}")
            return _error(500, str(e))

        return StatusResponse(status="ok")

    @app.get("/stats")
    async def get_registry_stats() -> Dict[str, Any]:
        """Get registry statistics and service information"""
        try:
            stats = app.state.registry.stats()
        except StorageError as e:
            logger.error(f"Stats error: {e}")
            return _error(500, str(e))

        return {
            "registry_stats": stats,
            "service_info": {
                "title": app.title,
                "version": app.version,
                "description": app.description,
            },
        }

    @app.get("/health")
    async def health_check() -> Dict[str, Any]:
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": app.title,
            "version": app.version,
            "storage_backend": app.state.registry.store.backend,
            "timestamp": time.time(),
        }

    return app


# Convenience for uvicorn: `uvicorn src.services.rendezvous_service:app`
app = create_app()


if __name__ == "__main__":
    settings = get_config().config
    logger.info(f"Server starting on {settings.host}:{settings.port}")
    uvicorn.run(
        "src.services.rendezvous_service:app",
        host=settings.host,
        port=settings.port,
        log_level="info",
    )
