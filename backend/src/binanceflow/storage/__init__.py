"""
Bounded persistence for stream records.

Two operation families, both safe to retry:
- append_bounded: push to a capped list (candles, trades)
- set_expiring: latest-value slot with a time-to-live (quotes, book snapshots)
"""

from .base import BoundedStore, serialize_record
from .market_data import MarketDataStore, RetentionPolicy
from .memory_store import MemoryBoundedStore
from .redis_store import RedisBoundedStore
from .postgres_store import PostgresBoundedStore
from .factory import create_store

__all__ = [
    "BoundedStore",
    "serialize_record",
    "MarketDataStore",
    "RetentionPolicy",
    "MemoryBoundedStore",
    "RedisBoundedStore",
    "PostgresBoundedStore",
    "create_store",
]
