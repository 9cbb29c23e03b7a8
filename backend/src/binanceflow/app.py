"""
Starlette application for Binance Flow.

The lifespan starts the stream service on startup and stops it on
shutdown; uvicorn turns SIGINT/SIGTERM into lifespan shutdown. Two
endpoints expose liveness and pipeline statistics.
"""

import logging
import time
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route

from . import __version__
from .config import load_config
from .service import StreamService

logger = logging.getLogger("binanceflow.app")


@asynccontextmanager
async def lifespan(app: Starlette):
    """Start the stream service and stop it on shutdown."""
    service: StreamService = getattr(app.state, "service", None)
    if service is None:
        service = StreamService(load_config())
        app.state.service = service

    app.state.started_at = time.time()
    await service.start()
    logger.info("Binance Flow started")

    try:
        yield
    finally:
        logger.info("Shutting down Binance Flow...")
        await service.stop()
        logger.info("Binance Flow shutdown complete")


async def health_check(request):
    """200 while the ingestion loop is running, 503 once it has stopped."""
    service: StreamService = request.app.state.service
    healthy = service.is_healthy()
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "service": "binanceflow",
        "version": __version__,
        "uptime_seconds": round(time.time() - request.app.state.started_at, 1),
    }
    if not healthy:
        body["error"] = service.ingestion.get_stats()["error"]
    return JSONResponse(body, status_code=200 if healthy else 503)


async def status_endpoint(request):
    """Connection, router and loop statistics."""
    service: StreamService = request.app.state.service
    return JSONResponse(service.get_stats())


routes = [
    Route("/health", health_check, methods=["GET"]),
    Route("/status", status_endpoint, methods=["GET"]),
]


def create_app(service: StreamService = None) -> Starlette:
    """Build the ASGI app; pass ``service`` to inject a prebuilt pipeline."""
    app = Starlette(routes=routes, lifespan=lifespan)
    if service is not None:
        app.state.service = service
    return app
