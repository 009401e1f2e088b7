"""Main FastAPI application for dashboard API."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dashboard_api.config import Settings, get_settings
from dashboard_api.middleware.error_handler import setup_exception_handlers
from dashboard_api.routes import streams
from dashboard_api.routes import websocket as ws_router
from dashboard_api.websocket import ConnectionManager
from logging_module import LoggingConfig, setup_logging
from stream_engine.service import StreamService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown.

    Every running transcoder is stopped on shutdown.

    Args:
        app: FastAPI application instance.
    """
    logger.info("Starting Dashboard API...")
    service: StreamService = app.state.service
    service.broadcaster.transport = app.state.connections
    await service.open()
    logger.info("Dashboard API ready")

    try:
        yield
    finally:
        logger.info("Shutting down Dashboard API...")
        await service.close()


def create_app(
    service: Optional[StreamService] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        service: Stream service (built from the environment if not provided).
        settings: API settings (loaded from the environment if not provided).

    Returns:
        FastAPI: Configured application.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="REST API for pushing looping media streams to RTMP",
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.service = service or StreamService()
    app.state.connections = ConnectionManager()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    app.include_router(
        streams.router, prefix=f"{settings.api_prefix}/streams", tags=["Stream Control"]
    )
    # WebSocket route (no prefix needed for /ws)
    app.include_router(ws_router.router, tags=["WebSocket"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint.

        Returns:
            dict: Health status.
        """
        return {
            "status": "healthy",
            "service": settings.app_name,
            "active_streams": len(app.state.service.supervisor.registry),
            "timestamp": datetime.utcnow().isoformat(),
        }

    return app


def main() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    setup_logging(LoggingConfig.from_env())
    settings = get_settings()
    uvicorn.run(
        create_app(settings=settings),
        host=settings.host,
        port=settings.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
