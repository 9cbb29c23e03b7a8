"""
Main entry point for Binance Flow.

Loads configuration, sets up logging and serves the status app with
uvicorn; the app lifespan runs the ingestion pipeline. Ctrl+C or
SIGTERM shuts everything down gracefully.
"""

import asyncio
import logging

import uvicorn

from . import __version__
from .app import create_app
from .config import load_config, setup_logging
from .service import StreamService


async def main() -> None:
    cfg = load_config()
    logger = setup_logging(cfg)

    logger.info("=" * 60)
    logger.info(f"Binance Flow v{__version__}")
    logger.info("=" * 60)
    logger.info(f"Environment: {cfg.ENVIRONMENT}")
    logger.info(f"Stream URL: {cfg.BINANCE_WS_URL}")
    logger.info(f"Symbols: {', '.join(cfg.BINANCE_SYMBOLS)}")
    logger.info(f"Store backend: {cfg.STORE_BACKEND}")
    logger.info(f"Status endpoint: http://{cfg.HOST}:{cfg.PORT}/status")
    logger.info("-" * 60)

    app = create_app(StreamService(cfg))
    server = uvicorn.Server(uvicorn.Config(
        app,
        host=cfg.HOST,
        port=cfg.PORT,
        log_level="debug" if cfg.DEBUG else "info",
    ))

    try:
        await server.serve()
    finally:
        logger.info("Binance Flow exited")


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logging.getLogger("binanceflow").info("Shutdown signal received")


if __name__ == "__main__":
    run()
