"""
Tests for the stream payload models.
"""

import json

import pytest
from pydantic import ValidationError

from binanceflow.models import AggTrade, BookTicker, Kline, OrderBook, StreamType


class TestKline:

    def test_parse(self, kline_payload):
        kline = Kline.model_validate_json(json.dumps(kline_payload))

        assert kline.symbol == "BTCUSDT"
        assert kline.interval == "1m"
        assert kline.kline.open_price == "37000.10"
        assert kline.kline.is_closed is False

    def test_dump_keeps_wire_keys(self, kline_payload):
        kline = Kline.model_validate(kline_payload)
        dumped = json.loads(kline.model_dump_json(by_alias=True))

        assert dumped["s"] == "BTCUSDT"
        assert dumped["k"]["i"] == "1m"
        # Unknown keys are dropped
        assert "B" not in dumped["k"]

    def test_missing_field(self, kline_payload):
        del kline_payload["k"]
        with pytest.raises(ValidationError):
            Kline.model_validate(kline_payload)


class TestAggTrade:

    def test_parse(self, agg_trade_payload):
        trade = AggTrade.model_validate(agg_trade_payload)

        assert trade.trade_id == 5933014
        assert trade.price == "37005.10"
        assert trade.is_maker is True

    def test_populate_by_name(self):
        trade = AggTrade(
            event_time=1, symbol="BTCUSDT", trade_id=2, price="1", quantity="2",
            first_id=3, last_id=4, trade_time=5, is_maker=False,
        )
        assert trade.event_type == "aggTrade"


class TestBookTicker:

    def test_parse(self, book_ticker_payload):
        ticker = BookTicker.model_validate(book_ticker_payload)

        assert ticker.bid_price == "37005.00"
        assert ticker.ask_quantity == "1.05"

    def test_optional_times(self, book_ticker_payload):
        del book_ticker_payload["E"]
        del book_ticker_payload["T"]
        ticker = BookTicker.model_validate(book_ticker_payload)

        assert ticker.event_time is None


class TestOrderBook:

    def test_parse_levels(self, depth_payload):
        book = OrderBook.model_validate(depth_payload)

        assert len(book.bids) == 2
        assert book.best_bid.price == "37005.00"
        assert book.best_bid.quantity == "3.21"
        assert book.best_ask.price == "37005.10"
        assert book.last_update_id == 390497878

    def test_levels_keep_wire_precision(self, depth_payload):
        depth_payload["b"] = [["37005.10000000", "0.00100000"]]
        book = OrderBook.model_validate_json(json.dumps(depth_payload))
        dumped = json.loads(book.model_dump_json(by_alias=True))

        assert book.best_bid.price == "37005.10000000"
        assert dumped["b"] == [{"price": "37005.10000000", "quantity": "0.00100000"}]

    def test_empty_book(self, depth_payload):
        depth_payload["b"] = []
        depth_payload["a"] = []
        book = OrderBook.model_validate(depth_payload)

        assert book.best_bid is None
        assert book.best_ask is None

    def test_short_level_rejected(self, depth_payload):
        depth_payload["b"] = [["37005.00"]]
        with pytest.raises(ValidationError):
            OrderBook.model_validate(depth_payload)


def test_stream_type_values():
    assert [t.value for t in StreamType] == ["kline_1m", "aggTrade", "bookTicker", "depth20"]
    assert StreamType("depth20") is StreamType.DEPTH20
