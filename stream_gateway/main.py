"""
Stream Gateway main application.

Accepts streaming WebSocket connections, answers control messages and
exposes health and Prometheus endpoints.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from shared.config.logging import setup_logging, stream_gateway_logger as logger
from shared.config.settings import settings
from stream_gateway import __version__
from stream_gateway.components.core.constants import DEFAULT_ALLOWED_ORIGINS
from stream_gateway.components.endpoints.stream import StreamEndpoint
from stream_gateway.components.metrics.prometheus import generate_prometheus_metrics
from stream_gateway.connection_manager import ConnectionManager
from stream_gateway.handlers import register_default_handlers


def get_allowed_origins() -> list[str]:
    """Origins from settings, else the localhost defaults plus their HTTPS variants."""
    if settings.allowed_origins:
        return [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    return list(DEFAULT_ALLOWED_ORIGINS) + [
        origin.replace("http://", "https://") for origin in DEFAULT_ALLOWED_ORIGINS
    ]


def create_app(manager: ConnectionManager | None = None) -> FastAPI:
    """
    Build the gateway application around a ConnectionManager.

    Args:
        manager: Manager to serve. A new one configured from settings if omitted.
    """
    manager = manager or ConnectionManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        Starts the heartbeat monitor; on shutdown stops it and closes
        every connection with 1001.
        """
        setup_logging()
        logger.info(
            "Starting Stream Gateway",
            port=settings.stream_gateway_port,
            env=settings.environment,
            heartbeat_interval=manager.heartbeat.interval,
        )
        for error in settings.validate_production_settings():
            logger.warning("Configuration problem", error=error)

        register_default_handlers(manager)
        await manager.start()

        yield

        closed = await manager.shutdown()
        logger.info("Stream Gateway stopped", closed_connections=closed)

    app = FastAPI(
        title="Stream Gateway",
        description="Realtime streaming gateway for audio sessions",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.manager = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/ws/health")
    def health_check():
        """Basic health check endpoint."""
        try:
            stats = manager.get_stats()
        except Exception as e:
            logger.warning("Failed to get stats in health check", error=str(e))
            stats = {"error": "stats_unavailable"}
        return {
            "status": "shutting_down" if manager.is_shutting_down() else "healthy",
            "service": "stream-gateway",
            "version": app.version,
            "environment": settings.environment,
            **stats,
        }

    # =========================================================================
    # Prometheus Metrics Endpoint
    # =========================================================================

    @app.get("/ws/metrics")
    def prometheus_metrics():
        """
        Prometheus-compatible metrics endpoint.

        Configure Prometheus scrape:
            scrape_configs:
              - job_name: 'stream-gateway'
                static_configs:
                  - targets: ['localhost:8080']
                metrics_path: '/ws/metrics'
        """
        return PlainTextResponse(
            content=generate_prometheus_metrics(manager),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    # =========================================================================
    # WebSocket Endpoints
    # =========================================================================

    @app.websocket("/ws/stream")
    @app.websocket("/")
    async def stream_websocket(websocket: WebSocket):
        """
        WebSocket endpoint for streaming peers.

        Optional query parameter sessionId (or session) joins an existing
        session; without it a new session id is generated.
        """
        await StreamEndpoint(websocket, manager, endpoint_name=websocket.url.path).run()

    return app


app = create_app()


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "stream_gateway.main:app",
        host=settings.stream_gateway_host,
        port=settings.stream_gateway_port,
        reload=settings.debug,
    )
