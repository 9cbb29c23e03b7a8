"""
Redis-backed bounded store.

Capped lists use LPUSH + LTRIM inside a MULTI/EXEC pipeline so a
concurrent reader never observes the list above its cap. Expiring
values use SET with PX so sub-second TTLs are honoured.
"""

import asyncio
import logging
from typing import Any, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..errors import StoreError
from .base import BoundedStore, serialize_record, validate_max_len, validate_ttl

logger = logging.getLogger("binanceflow.storage.redis")

PING_TIMEOUT_SECONDS = 5.0


class RedisBoundedStore(BoundedStore):
    """Bounded store on a single Redis database."""

    name = "redis"

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        password: Optional[str] = None,
        db: int = 0,
        client: Optional[redis.Redis] = None,
    ):
        """
        Args:
            host: Redis host
            port: Redis port
            password: Optional password
            db: Database index
            client: Pre-built client (tests, shared pools); overrides the other arguments
        """
        self.host = host
        self.port = port
        self.db = db
        self._client = client or redis.Redis(host=host, port=port, password=password, db=db)

    async def initialize(self) -> None:
        """Verify the server answers PING within the startup timeout."""
        try:
            await asyncio.wait_for(self._client.ping(), timeout=PING_TIMEOUT_SECONDS)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise StoreError(f"Failed to connect to Redis at {self.host}:{self.port}: {e}") from e
        logger.info(f"Connected to Redis at {self.host}:{self.port} db={self.db}")

    async def append_bounded(self, key: str, record: Any, max_len: int) -> None:
        validate_max_len(max_len)
        data = serialize_record(record)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.lpush(key, data)
                pipe.ltrim(key, 0, max_len - 1)
                await pipe.execute()
        except RedisError as e:
            raise StoreError(f"Redis append to {key} failed: {e}") from e

    async def set_expiring(self, key: str, record: Any, ttl: float) -> None:
        validate_ttl(ttl)
        data = serialize_record(record)
        try:
            if ttl > 0:
                # PX keeps millisecond precision; never round a positive TTL down to 0.
                await self._client.set(key, data, px=max(1, int(ttl * 1000)))
            else:
                await self._client.set(key, data)
        except RedisError as e:
            raise StoreError(f"Redis set on {key} failed: {e}") from e

    async def get_list(self, key: str) -> List[bytes]:
        try:
            return list(await self._client.lrange(key, 0, -1))
        except RedisError as e:
            raise StoreError(f"Redis read of {key} failed: {e}") from e

    async def get_value(self, key: str) -> Optional[bytes]:
        try:
            return await self._client.get(key)
        except RedisError as e:
            raise StoreError(f"Redis read of {key} failed: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Redis connection closed")
