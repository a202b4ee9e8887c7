"""
Zeebe Operator — HTTP API

Runs inside the operator process and shares its record store, poller
registry and event bridge:
  - CORS for dashboard access
  - Rate limiting (slowapi)
  - Prometheus metrics (/metrics)
  - Health check (/health) with poller/queue counts
  - Cluster routes (/api/clusters, /api/webhooks/cloud)
"""

import logging
import threading

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from zeebe_operator import __version__
from zeebe_operator.api.routers.clusters import limiter, router as clusters_router
from zeebe_operator.config import settings
from zeebe_operator.models import now

logger = logging.getLogger("zeebe-operator.api")


def create_app(store, bridge, pollers) -> FastAPI:
    app = FastAPI(
        title="Zeebe Operator API",
        description="Read access to ZeebeCluster records and synthetic reconcile events",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.store = store
    app.state.bridge = bridge
    app.state.pollers = pollers

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS.split(","),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.include_router(clusters_router, prefix="/api")

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "timestamp": now(),
            "pollers": len(pollers.active_ids()),
            "pendingEvents": bridge.pending(),
            "version": __version__,
        }

    @app.get("/metrics", response_class=PlainTextResponse)
    async def metrics():
        """Expose Prometheus metrics."""
        return PlainTextResponse(
            content=generate_latest().decode("utf-8"),
            media_type=CONTENT_TYPE_LATEST,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


def serve_in_background(app: FastAPI) -> uvicorn.Server:
    """Start uvicorn on a daemon thread. Set server.should_exit to stop it."""
    server = uvicorn.Server(uvicorn.Config(
        app,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level="info",
    ))
    thread = threading.Thread(target=server.run, name="api-server", daemon=True)
    thread.start()
    logger.info(f"API listening on {settings.API_HOST}:{settings.API_PORT}")
    return server
