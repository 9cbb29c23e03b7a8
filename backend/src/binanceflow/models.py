"""
Pydantic models for Binance futures stream payloads.

Field aliases follow the single-letter keys used on the wire so payloads
can be validated straight from JSON bytes and re-serialized in the same
shape with ``model_dump_json(by_alias=True)``.
"""

from enum import Enum
from typing import List, Optional, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StreamType(str, Enum):
    """Dispatch keys for the stream kinds this service subscribes to."""
    KLINE_1M = "kline_1m"
    AGG_TRADE = "aggTrade"
    BOOK_TICKER = "bookTicker"
    DEPTH20 = "depth20"


class EventType(str, Enum):
    """Values of the ``e`` discriminator carried by direct-format frames."""
    KLINE = "kline"
    AGG_TRADE = "aggTrade"
    BOOK_TICKER = "bookTicker"
    DEPTH_UPDATE = "depthUpdate"


class StreamPayload(BaseModel):
    """Base for wire payloads: accept aliases or field names, ignore extras."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class KlineData(StreamPayload):
    """The ``k`` object of a kline event."""
    start_time: int = Field(..., alias="t")
    close_time: int = Field(..., alias="T")
    symbol: str = Field(..., alias="s")
    interval: str = Field(..., alias="i")
    first_trade_id: int = Field(..., alias="f")
    last_trade_id: int = Field(..., alias="L")
    open_price: str = Field(..., alias="o")
    close_price: str = Field(..., alias="c")
    high_price: str = Field(..., alias="h")
    low_price: str = Field(..., alias="l")
    volume: str = Field(..., alias="v")
    trade_count: int = Field(..., alias="n")
    is_closed: bool = Field(..., alias="x")
    quote_volume: str = Field(..., alias="q")
    taker_volume: str = Field(..., alias="V")
    taker_quote_volume: str = Field(..., alias="Q")


class Kline(StreamPayload):
    """A candlestick update for one symbol and interval."""
    event_type: str = Field("kline", alias="e")
    event_time: int = Field(..., alias="E")
    symbol: str = Field(..., alias="s")
    kline: KlineData = Field(..., alias="k")

    @property
    def interval(self) -> str:
        return self.kline.interval


class AggTrade(StreamPayload):
    """An aggregated trade."""
    event_type: str = Field("aggTrade", alias="e")
    event_time: int = Field(..., alias="E")
    symbol: str = Field(..., alias="s")
    trade_id: int = Field(..., alias="a")
    price: str = Field(..., alias="p")
    quantity: str = Field(..., alias="q")
    first_id: int = Field(..., alias="f")
    last_id: int = Field(..., alias="l")
    trade_time: int = Field(..., alias="T")
    is_maker: bool = Field(..., alias="m")


class BookTicker(StreamPayload):
    """Best bid/ask quote."""
    event_type: str = Field("bookTicker", alias="e")
    update_id: int = Field(..., alias="u")
    event_time: Optional[int] = Field(None, alias="E")
    transaction_time: Optional[int] = Field(None, alias="T")
    symbol: str = Field(..., alias="s")
    bid_price: str = Field(..., alias="b")
    bid_quantity: str = Field(..., alias="B")
    ask_price: str = Field(..., alias="a")
    ask_quantity: str = Field(..., alias="A")


class OrderBookLevel(BaseModel):
    """A single price level in the order book, kept as the wire strings."""
    price: str
    quantity: str


class OrderBook(StreamPayload):
    """A partial book depth snapshot (top N levels) pushed as ``depthUpdate``."""
    event_type: str = Field("depthUpdate", alias="e")
    event_time: int = Field(..., alias="E")
    transaction_time: Optional[int] = Field(None, alias="T")
    symbol: str = Field(..., alias="s")
    first_update_id: Optional[int] = Field(None, alias="U")
    last_update_id: int = Field(..., alias="u")
    previous_update_id: Optional[int] = Field(None, alias="pu")
    bids: List[OrderBookLevel] = Field(default_factory=list, alias="b")
    asks: List[OrderBookLevel] = Field(default_factory=list, alias="a")

    @field_validator("bids", "asks", mode="before")
    @classmethod
    def parse_levels(cls, v: Any) -> Any:
        """Binance sends levels as ``[price, quantity]`` string pairs."""
        if not isinstance(v, list):
            return v
        levels = []
        for level in v:
            if isinstance(level, (list, tuple)):
                if len(level) < 2:
                    raise ValueError(f"Order book level needs price and quantity, got {level}")
                levels.append({"price": level[0], "quantity": level[1]})
            else:
                levels.append(level)
        return levels

    @property
    def best_bid(self) -> Optional[OrderBookLevel]:
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> Optional[OrderBookLevel]:
        return self.asks[0] if self.asks else None
