"""
Connection manager for the Binance combined-stream WebSocket.

Builds the fixed topic list from the configured symbols, opens a single
multiplexed connection (``<base>/stream?streams=a/b/c``) and exposes a
serialized receive primitive. ``close()`` may run while a ``receive()``
is blocked; the pending receive then fails promptly with ReceiveError.
"""

import asyncio
import logging
import time
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import websockets
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

from .errors import CloseError, ConnectError, ReceiveError

logger = logging.getLogger("binanceflow.connection")

TOPIC_DELIMITER = "@"
STREAM_SEPARATOR = "/"

# Topic kinds subscribed for every symbol, in subscription order.
DEFAULT_TOPIC_KINDS = (
    "kline_1m",        # 1-minute candles
    "aggTrade",        # aggregated trades
    "bookTicker",      # best bid/ask
    "depth20@100ms",   # top 20 levels every 100ms
)


@dataclass(frozen=True)
class SubscriptionTopic:
    """One symbol/kind subscription, rendered as ``<symbol>@<kind>``."""
    symbol: str
    kind: str

    @property
    def name(self) -> str:
        return f"{self.symbol.lower()}{TOPIC_DELIMITER}{self.kind}"

    @property
    def stream_type(self) -> str:
        """The kind without any parameter suffix (``depth20@100ms`` -> ``depth20``)."""
        return self.kind.split(TOPIC_DELIMITER, 1)[0]

    def __str__(self) -> str:
        return self.name


def build_topics(
    symbols: Iterable[str],
    kinds: Sequence[str] = DEFAULT_TOPIC_KINDS,
) -> List[SubscriptionTopic]:
    """
    Build the subscription topics, symbol-major, in a stable order.

    Symbols are compared case-insensitively; a repeated symbol is subscribed once.
    """
    topics: List[SubscriptionTopic] = []
    seen = set()
    for symbol in symbols:
        normalized = symbol.strip().lower()
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        for kind in kinds:
            topics.append(SubscriptionTopic(symbol=normalized, kind=kind))
    return topics


def build_stream_url(base_url: str, topics: Sequence[SubscriptionTopic]) -> str:
    """Join topic names into a combined-stream URL."""
    if not topics:
        raise ValueError("At least one topic is required")
    streams = STREAM_SEPARATOR.join(topic.name for topic in topics)
    return f"{base_url.rstrip('/')}/stream?streams={streams}"


class ConnectionManager:
    """
    Owns the WebSocket connection for one combined stream.

    The topic list is computed once at construction and never changes.
    Only one receive may be in flight at a time.
    """

    def __init__(
        self,
        base_url: str,
        symbols: Iterable[str],
        ping_interval: Optional[float] = 20.0,
        ping_timeout: Optional[float] = 20.0,
        open_timeout: Optional[float] = 10.0,
        close_timeout: Optional[float] = 5.0,
        max_size: int = 2**20,
    ):
        """
        Args:
            base_url: Stream endpoint, e.g. wss://fstream.binance.com
            symbols: Symbols to subscribe to
            ping_interval: Seconds between keepalive pings (None disables)
            ping_timeout: Seconds to wait for a pong
            open_timeout: Seconds allowed for the opening handshake
            close_timeout: Seconds allowed for the closing handshake
            max_size: Maximum frame size in bytes
        """
        self.base_url = base_url.rstrip("/")
        self.topics: List[SubscriptionTopic] = build_topics(symbols)
        if not self.topics:
            raise ValueError("At least one symbol is required")
        self.url = build_stream_url(self.base_url, self.topics)

        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.open_timeout = open_timeout
        self.close_timeout = close_timeout
        self.max_size = max_size

        self._websocket = None
        self._recv_lock = asyncio.Lock()
        self._close_lock = asyncio.Lock()

        # Statistics
        self._frames_received = 0
        self._connected_at: Optional[float] = None
        self._last_frame_time: Optional[float] = None

        logger.info(
            f"ConnectionManager initialized with {len(self.topics)} topics "
            f"for {len({topic.symbol for topic in self.topics})} symbols"
        )

    @property
    def is_connected(self) -> bool:
        return self._websocket is not None

    async def connect(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """
        Open the combined-stream connection. No retry.

        Args:
            stop_event: Shutdown signal; if set before or during the dial the
                attempt is abandoned with ConnectError.

        Raises:
            ConnectError: dial failure, handshake rejection, timeout or cancellation
        """
        if self._websocket is not None:
            raise ConnectError("Already connected")

        if stop_event is not None and stop_event.is_set():
            raise ConnectError("Connect cancelled: shutdown requested")

        logger.info(f"Connecting to WebSocket URL: {self.url}")

        dial = asyncio.ensure_future(self._dial())
        try:
            if stop_event is None:
                websocket = await dial
            else:
                stop_wait = asyncio.ensure_future(stop_event.wait())
                try:
                    done, _ = await asyncio.wait(
                        {dial, stop_wait}, return_when=asyncio.FIRST_COMPLETED
                    )
                finally:
                    stop_wait.cancel()

                if dial not in done:
                    dial.cancel()
                    with suppress(asyncio.CancelledError, ConnectError):
                        await dial
                    raise ConnectError("Connect cancelled: shutdown requested")

                websocket = dial.result()
        finally:
            if not dial.done():
                dial.cancel()

        self._websocket = websocket
        self._connected_at = time.time()
        logger.info(f"WebSocket connected: {len(self.topics)} streams")

    async def _dial(self):
        try:
            return await websockets.connect(
                self.url,
                ping_interval=self.ping_interval,
                ping_timeout=self.ping_timeout,
                open_timeout=self.open_timeout,
                close_timeout=self.close_timeout,
                max_size=self.max_size,
                compression=None,  # lower latency
            )
        except InvalidStatus as e:
            raise ConnectError(
                f"Handshake rejected by server: HTTP {e.response.status_code}"
            ) from e
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            raise ConnectError(f"Failed to connect to Binance websocket: {e}") from e

    async def receive(self) -> Union[str, bytes]:
        """
        Wait for the next frame.

        Raises:
            ReceiveError: not connected, connection closed or protocol violation
        """
        async with self._recv_lock:
            websocket = self._websocket
            if websocket is None:
                raise ReceiveError("Not connected")

            try:
                frame = await websocket.recv()
            except ConnectionClosed as e:
                raise ReceiveError(f"WebSocket connection closed: {e}") from e
            except WebSocketException as e:
                raise ReceiveError(f"WebSocket error: {e}") from e

            self._frames_received += 1
            self._last_frame_time = time.time()
            return frame

    async def close(self) -> None:
        """
        Close the connection. Idempotent; a no-op when never connected.

        Raises:
            CloseError: the closing handshake failed
        """
        async with self._close_lock:
            websocket, self._websocket = self._websocket, None
            if websocket is None:
                return

            logger.info("Closing WebSocket connection")
            try:
                await websocket.close()
            except (WebSocketException, OSError) as e:
                raise CloseError(f"Error closing WebSocket: {e}") from e
            finally:
                self._connected_at = None

    def get_stats(self) -> Dict[str, Any]:
        return {
            "connected": self.is_connected,
            "url": self.url,
            "topics": [topic.name for topic in self.topics],
            "frames_received": self._frames_received,
            "connected_at": self._connected_at,
            "last_frame_time": self._last_frame_time,
        }
