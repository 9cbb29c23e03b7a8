"""
In-process bounded store.

Used for dry runs without external services and in tests, where the
clock is replaced to simulate expiry. Each operation runs without an
await between mutation steps, so append+trim and set+expire are atomic
with respect to other coroutines on the same event loop.
"""

import logging
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from .base import BoundedStore, serialize_record, validate_max_len, validate_ttl

logger = logging.getLogger("binanceflow.storage.memory")


class MemoryBoundedStore(BoundedStore):
    """Dict-backed bounded store with an injectable monotonic clock."""

    name = "memory"

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._lists: Dict[str, Deque[bytes]] = {}
        # key -> (payload, expires_at or None)
        self._values: Dict[str, Tuple[bytes, Optional[float]]] = {}

    async def append_bounded(self, key: str, record: Any, max_len: int) -> None:
        validate_max_len(max_len)
        data = serialize_record(record)
        items = self._lists.get(key)
        if items is None or items.maxlen != max_len:
            items = deque(items or (), maxlen=max_len)
            self._lists[key] = items
        items.appendleft(data)

    async def set_expiring(self, key: str, record: Any, ttl: float) -> None:
        validate_ttl(ttl)
        data = serialize_record(record)
        expires_at = self._clock() + ttl if ttl > 0 else None
        self._values[key] = (data, expires_at)

    async def get_list(self, key: str) -> List[bytes]:
        return list(self._lists.get(key, ()))

    async def get_value(self, key: str) -> Optional[bytes]:
        entry = self._values.get(key)
        if entry is None:
            return None
        data, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._values[key]
            return None
        return data

    async def close(self) -> None:
        logger.info(
            f"Memory store closed: lists={len(self._lists)}, values={len(self._values)}"
        )
