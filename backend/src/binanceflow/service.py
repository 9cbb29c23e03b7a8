"""
Stream service wiring.

Builds the store, handler registry, connection and ingestion loop from a
FlowConfig, and owns their start/stop order. Handlers are registered in
the constructor, before any connection exists.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from .config import FlowConfig
from .connection import ConnectionManager
from .errors import BinanceFlowError
from .handlers import register_default_handlers
from .ingestion import IngestionLoop
from .registry import HandlerRegistry
from .storage import BoundedStore, MarketDataStore, create_store

logger = logging.getLogger("binanceflow.service")

STOP_TIMEOUT_SECONDS = 10.0


class StreamService:
    """Owns one ingestion pipeline for the lifetime of the process."""

    def __init__(
        self,
        cfg: FlowConfig,
        store: Optional[BoundedStore] = None,
        connection: Optional[ConnectionManager] = None,
    ):
        """
        Args:
            cfg: Service configuration
            store: Store backend (defaults to the configured one)
            connection: Connection manager (defaults to one built from config)
        """
        self.config = cfg
        self.store = store or create_store(cfg)
        self.market_data = MarketDataStore(self.store, cfg.retention_policy)
        self.registry = register_default_handlers(HandlerRegistry(), self.market_data)
        self.connection = connection or ConnectionManager(
            base_url=cfg.BINANCE_WS_URL,
            symbols=cfg.BINANCE_SYMBOLS,
            ping_interval=cfg.WEBSOCKET_PING_INTERVAL,
            ping_timeout=cfg.WEBSOCKET_PING_TIMEOUT,
            open_timeout=cfg.WEBSOCKET_OPEN_TIMEOUT,
            close_timeout=cfg.WEBSOCKET_CLOSE_TIMEOUT,
        )
        self.ingestion = IngestionLoop(self.connection, self.registry)

        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """
        Initialize the store, connect, and start the ingestion loop task.

        Raises:
            StoreError: the store backend is unreachable
            ConnectError: the stream connection could not be opened
        """
        if self._task is not None:
            logger.warning("StreamService is already running")
            return

        logger.info(
            f"Starting stream service: symbols={self.config.BINANCE_SYMBOLS}, "
            f"store={self.store.name}"
        )
        await self.store.initialize()
        await self.connection.connect(self._stop_event)
        self._task = asyncio.create_task(self._run(), name="binanceflow-ingestion")

    async def _run(self) -> None:
        try:
            await self.ingestion.run(self._stop_event)
        except BinanceFlowError as e:
            # No reconnect here: the service reports unhealthy and the process supervisor decides.
            logger.error(f"Websocket listener error: {e}")
        except Exception as e:
            logger.error(f"Ingestion loop crashed: {e}", exc_info=True)

    async def stop(self) -> None:
        """Signal the loop to stop, wait for it, then close the store."""
        logger.info("Stopping stream service...")
        self._stop_event.set()

        try:
            if self._task is not None:
                await asyncio.wait_for(self._task, timeout=STOP_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.error(f"Ingestion loop did not stop within {STOP_TIMEOUT_SECONDS}s")
        finally:
            try:
                await self.market_data.close()
            except BinanceFlowError as e:
                logger.error(f"Error closing store: {e}")

        logger.info("Stream service stopped")

    def is_healthy(self) -> bool:
        # The task only finishes when the loop exits, cleanly or not.
        return self._task is not None and not self._task.done()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "healthy": self.is_healthy(),
            "store_backend": self.store.name,
            "symbols": self.config.BINANCE_SYMBOLS,
            "registered_stream_types": self.registry.stream_types(),
            "connection": self.connection.get_stats(),
            "ingestion": self.ingestion.get_stats(),
        }
