"""
Market data facade over a BoundedStore.

Owns the key layout and the retention policy for each record category:
- kline:<symbol>:<interval>  capped list
- trades:<symbol>            capped list
- orderbook:<symbol>         expiring scalar
- bookticker:<symbol>        expiring scalar (shorter TTL than orderbook)
"""

from dataclasses import dataclass
from typing import Any

from .base import BoundedStore, validate_max_len, validate_ttl

DEFAULT_KLINE_MAX_ITEMS = 1000
DEFAULT_TRADES_MAX_ITEMS = 5000
DEFAULT_ORDERBOOK_TTL_SECONDS = 5.0
DEFAULT_BOOKTICKER_TTL_SECONDS = 0.5


@dataclass(frozen=True)
class RetentionPolicy:
    """Retention limits, fixed when the store is built."""
    kline_max_items: int = DEFAULT_KLINE_MAX_ITEMS
    trades_max_items: int = DEFAULT_TRADES_MAX_ITEMS
    orderbook_ttl: float = DEFAULT_ORDERBOOK_TTL_SECONDS
    bookticker_ttl: float = DEFAULT_BOOKTICKER_TTL_SECONDS

    def __post_init__(self):
        validate_max_len(self.kline_max_items)
        validate_max_len(self.trades_max_items)
        validate_ttl(self.orderbook_ttl)
        validate_ttl(self.bookticker_ttl)


def kline_key(symbol: str, interval: str) -> str:
    return f"kline:{symbol}:{interval}"


def trades_key(symbol: str) -> str:
    return f"trades:{symbol}"


def orderbook_key(symbol: str) -> str:
    return f"orderbook:{symbol}"


def bookticker_key(symbol: str) -> str:
    return f"bookticker:{symbol}"


class MarketDataStore:
    """Stores decoded stream records under their category's retention rule."""

    def __init__(self, store: BoundedStore, policy: RetentionPolicy = None):
        self.store = store
        self.policy = policy or RetentionPolicy()

    async def store_kline(self, symbol: str, interval: str, kline: Any) -> None:
        await self.store.append_bounded(
            kline_key(symbol, interval), kline, self.policy.kline_max_items
        )

    async def store_trade(self, symbol: str, trade: Any) -> None:
        await self.store.append_bounded(
            trades_key(symbol), trade, self.policy.trades_max_items
        )

    async def store_orderbook(self, symbol: str, orderbook: Any) -> None:
        await self.store.set_expiring(
            orderbook_key(symbol), orderbook, self.policy.orderbook_ttl
        )

    async def store_book_ticker(self, symbol: str, book_ticker: Any) -> None:
        await self.store.set_expiring(
            bookticker_key(symbol), book_ticker, self.policy.bookticker_ttl
        )

    async def close(self) -> None:
        await self.store.close()
