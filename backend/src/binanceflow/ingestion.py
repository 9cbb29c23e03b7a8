"""
Ingestion loop: receive -> route -> dispatch, until stopped or the transport fails.

One task runs the loop and each frame's handler finishes before the next
frame is received, so handlers see frames in connection order and a slow
store write holds back the whole feed.

Stopping: setting the stop event closes the connection, which makes the
blocked receive fail; the loop sees the stop event and returns normally.
Any other ReceiveError is propagated to the caller.
"""

import asyncio
import logging
import time
from contextlib import suppress
from typing import Any, Dict, Optional

from .connection import ConnectionManager
from .errors import CloseError, ConnectError, ReceiveError
from .registry import HandlerRegistry
from .router import MessageRouter

logger = logging.getLogger("binanceflow.ingestion")


class IngestionLoop:
    """Drives a MessageRouter against a ConnectionManager."""

    def __init__(
        self,
        connection: ConnectionManager,
        registry: HandlerRegistry,
        router: Optional[MessageRouter] = None,
    ):
        self.connection = connection
        self.registry = registry
        self.router = router or MessageRouter()

        self._running = False
        self._stopped_cleanly: Optional[bool] = None
        self._started_at: Optional[float] = None
        self._stopped_at: Optional[float] = None
        self._error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Connect (if needed) and process frames until ``stop_event`` is set.

        Returns normally on a requested stop, including one that interrupts
        a blocked receive.

        Raises:
            ConnectError: the connection could not be opened
            ReceiveError: the transport failed while no stop was requested
        """
        if self._running:
            raise RuntimeError("IngestionLoop is already running")

        self._running = True
        self._stopped_cleanly = None
        self._error = None
        self._started_at = time.time()
        watcher: Optional[asyncio.Task] = None

        try:
            if not self.connection.is_connected:
                try:
                    await self.connection.connect(stop_event)
                except ConnectError:
                    if stop_event.is_set():
                        logger.info("Shutdown requested before connection was established")
                        self._stopped_cleanly = True
                        return
                    raise

            watcher = asyncio.create_task(self._close_on_stop(stop_event))
            logger.info(
                f"Starting ingestion loop: {len(self.connection.topics)} streams, "
                f"{len(self.registry)} handlers"
            )

            while not stop_event.is_set():
                try:
                    frame = await self.connection.receive()
                except ReceiveError as e:
                    if stop_event.is_set():
                        logger.info("Receive interrupted by shutdown")
                        break
                    logger.error(f"Error reading websocket message: {e}")
                    self._error = str(e)
                    raise

                await self.router.route(frame, self.registry)

            self._stopped_cleanly = True
            logger.info("Ingestion loop stopped")

        except BaseException as e:
            self._stopped_cleanly = False
            if self._error is None and not isinstance(e, asyncio.CancelledError):
                self._error = str(e) or type(e).__name__
            raise

        finally:
            self._running = False
            self._stopped_at = time.time()
            if watcher is not None:
                # Once a stop is requested the watcher is closing the connection; let it finish.
                if not stop_event.is_set():
                    watcher.cancel()
                with suppress(asyncio.CancelledError):
                    await watcher
            await self._close_connection()

    async def _close_on_stop(self, stop_event: asyncio.Event) -> None:
        await stop_event.wait()
        logger.info("Shutdown requested, closing connection")
        await self._close_connection()

    async def _close_connection(self) -> None:
        try:
            await self.connection.close()
        except CloseError as e:
            logger.warning(f"Error closing connection: {e}")

    def get_stats(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "stopped_cleanly": self._stopped_cleanly,
            "started_at": self._started_at,
            "stopped_at": self._stopped_at,
            "error": self._error,
            "router": self.router.get_stats(),
        }
