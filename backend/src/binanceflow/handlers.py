"""
Default payload handlers.

Each handler decodes its payload with the matching pydantic model and
writes it through MarketDataStore. Decode failures raise HandlerError,
store failures raise StoreError; the router logs both and moves on.
"""

import logging
from typing import Awaitable, Callable, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import HandlerError
from .models import AggTrade, BookTicker, EventType, Kline, OrderBook, StreamType
from .registry import HandlerRegistry
from .storage.market_data import MarketDataStore

logger = logging.getLogger("binanceflow.handlers")

ModelT = TypeVar("ModelT", bound=BaseModel)


def decode_payload(model: Type[ModelT], payload: bytes, stream_type: str) -> ModelT:
    """Validate payload bytes against ``model``."""
    try:
        return model.model_validate_json(payload)
    except ValidationError as e:
        raise HandlerError(
            f"Failed to decode {stream_type} payload: {e.error_count()} validation error(s): "
            f"{e.errors()[0]['loc']} {e.errors()[0]['msg']}",
            stream_type=stream_type,
        ) from e


def make_kline_handler(store: MarketDataStore) -> Callable[[bytes], Awaitable[None]]:
    async def handle_kline(payload: bytes) -> None:
        kline = decode_payload(Kline, payload, StreamType.KLINE_1M.value)
        await store.store_kline(kline.symbol, kline.interval, kline)
    return handle_kline


def make_trade_handler(store: MarketDataStore) -> Callable[[bytes], Awaitable[None]]:
    async def handle_trade(payload: bytes) -> None:
        trade = decode_payload(AggTrade, payload, StreamType.AGG_TRADE.value)
        await store.store_trade(trade.symbol, trade)
    return handle_trade


def make_book_ticker_handler(store: MarketDataStore) -> Callable[[bytes], Awaitable[None]]:
    async def handle_book_ticker(payload: bytes) -> None:
        book_ticker = decode_payload(BookTicker, payload, StreamType.BOOK_TICKER.value)
        await store.store_book_ticker(book_ticker.symbol, book_ticker)
    return handle_book_ticker


def make_orderbook_handler(store: MarketDataStore) -> Callable[[bytes], Awaitable[None]]:
    async def handle_orderbook(payload: bytes) -> None:
        orderbook = decode_payload(OrderBook, payload, StreamType.DEPTH20.value)
        await store.store_orderbook(orderbook.symbol, orderbook)
    return handle_orderbook


def register_default_handlers(registry: HandlerRegistry, store: MarketDataStore) -> HandlerRegistry:
    """
    Register handlers for the four subscribed stream kinds.

    Stream types cover enveloped frames. The direct-format event names for
    candles and depth differ from their stream types, so those two handlers
    are also registered under ``kline`` and ``depthUpdate``; ``aggTrade``
    and ``bookTicker`` share one name across both formats.
    """
    kline_handler = make_kline_handler(store)
    orderbook_handler = make_orderbook_handler(store)

    registry.register(StreamType.KLINE_1M, kline_handler)
    registry.register(StreamType.AGG_TRADE, make_trade_handler(store))
    registry.register(StreamType.BOOK_TICKER, make_book_ticker_handler(store))
    registry.register(StreamType.DEPTH20, orderbook_handler)

    registry.register(EventType.KLINE, kline_handler)
    registry.register(EventType.DEPTH_UPDATE, orderbook_handler)

    logger.info(f"Registered handlers: {', '.join(registry.stream_types())}")
    return registry
