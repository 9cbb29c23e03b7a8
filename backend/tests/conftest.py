"""
Shared fixtures for Binance Flow tests.

FakeWebSocket stands in for a websockets client connection: frames are
fed through a queue, and close() wakes a blocked recv() with
ConnectionClosedOK the way a real connection does.
"""

import asyncio
import json
import os
from typing import Any, Dict, Iterable

import pytest
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.pop("BINANCEFLOW_CONFIG", None)


class MockAsyncContextManager:
    """Helper class for mocking async context managers."""

    def __init__(self, return_value):
        self.return_value = return_value

    async def __aenter__(self):
        return self.return_value

    async def __aexit__(self, *args):
        pass


class FakeWebSocket:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self, frames: Iterable[Any] = (), fail_when_drained: bool = False):
        self._frames: asyncio.Queue = asyncio.Queue()
        for frame in frames:
            self._frames.put_nowait(frame)
        self._closed = asyncio.Event()
        self.fail_when_drained = fail_when_drained
        self.close_calls = 0
        self.recv_calls = 0

    def feed(self, frame: Any) -> None:
        self._frames.put_nowait(frame)

    async def recv(self):
        self.recv_calls += 1
        if self._closed.is_set():
            raise ConnectionClosedOK(None, None)
        if self.fail_when_drained and self._frames.empty():
            raise ConnectionClosedError(None, None)

        get_frame = asyncio.ensure_future(self._frames.get())
        closed = asyncio.ensure_future(self._closed.wait())
        done, pending = await asyncio.wait(
            {get_frame, closed}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        if get_frame in done:
            return get_frame.result()
        raise ConnectionClosedOK(None, None)

    async def close(self):
        self.close_calls += 1
        self._closed.set()


def envelope(stream: str, data: Dict[str, Any]) -> str:
    return json.dumps({"stream": stream, "data": data})


@pytest.fixture
def kline_payload() -> Dict[str, Any]:
    return {
        "e": "kline",
        "E": 1700000000123,
        "s": "BTCUSDT",
        "k": {
            "t": 1700000000000,
            "T": 1700000059999,
            "s": "BTCUSDT",
            "i": "1m",
            "f": 100,
            "L": 200,
            "o": "37000.10",
            "c": "37010.50",
            "h": "37020.00",
            "l": "36990.00",
            "v": "12.345",
            "n": 101,
            "x": False,
            "q": "456789.01",
            "V": "6.1",
            "Q": "225000.00",
            "B": "0",
        },
    }


@pytest.fixture
def agg_trade_payload() -> Dict[str, Any]:
    return {
        "e": "aggTrade",
        "E": 1700000000456,
        "s": "BTCUSDT",
        "a": 5933014,
        "p": "37005.10",
        "q": "0.015",
        "f": 100,
        "l": 105,
        "T": 1700000000450,
        "m": True,
    }


@pytest.fixture
def book_ticker_payload() -> Dict[str, Any]:
    return {
        "e": "bookTicker",
        "u": 400900217,
        "E": 1700000000789,
        "T": 1700000000788,
        "s": "BTCUSDT",
        "b": "37005.00",
        "B": "3.21",
        "a": "37005.10",
        "A": "1.05",
    }


@pytest.fixture
def depth_payload() -> Dict[str, Any]:
    return {
        "e": "depthUpdate",
        "E": 1700000000999,
        "T": 1700000000998,
        "s": "BTCUSDT",
        "U": 390497796,
        "u": 390497878,
        "pu": 390497794,
        "b": [["37005.00", "3.21"], ["37004.90", "0.50"]],
        "a": [["37005.10", "1.05"], ["37005.20", "2.00"]],
    }


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
