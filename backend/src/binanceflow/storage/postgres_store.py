"""
PostgreSQL-backed bounded store.

Postgres has no native capped list or key TTL, so both are emulated in a
transaction: a per-key advisory lock serializes writers to the same key,
the insert and the trim/upsert commit together, and expired values are
filtered on read and purged periodically on write.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, List, Optional

import asyncpg

from ..errors import StoreError
from .base import BoundedStore, serialize_record, validate_max_len, validate_ttl

logger = logging.getLogger("binanceflow.storage.postgres")

# Purge expired scalar rows once every N expiring writes.
PURGE_EVERY_WRITES = 1000


class PostgresBoundedStore(BoundedStore):
    """Bounded store on two PostgreSQL tables: bounded_lists and expiring_values."""

    name = "postgres"

    def __init__(
        self,
        database_url: Optional[str] = None,
        min_size: int = 1,
        max_size: int = 5,
        command_timeout: float = 30,
    ):
        self.database_url = database_url
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self._pool: Optional[asyncpg.Pool] = None
        self._init_lock = asyncio.Lock()
        self._initialized = False
        self._writes_since_purge = 0

    async def initialize(self) -> None:
        """Create the connection pool and schema."""
        async with self._init_lock:
            if self._initialized:
                return

            if not self.database_url:
                raise StoreError("DATABASE_URL is required for the postgres store backend")

            try:
                self._pool = await asyncpg.create_pool(
                    self.database_url,
                    min_size=self.min_size,
                    max_size=self.max_size,
                    command_timeout=self.command_timeout,
                    statement_cache_size=0,  # pgbouncer compatibility
                    server_settings={
                        'application_name': 'binanceflow',
                        'timezone': 'UTC'
                    }
                )

                async with self._pool.acquire() as conn:
                    await conn.fetchval('SELECT 1')
                    await self._create_schema(conn)

            except (asyncpg.PostgresError, OSError) as e:
                logger.error(f"Failed to initialize postgres store: {e}")
                raise StoreError(f"Failed to initialize postgres store: {e}") from e

            self._initialized = True
            logger.info(f"Postgres store initialized with pool size {self.max_size}")

    async def _create_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute('''
            CREATE TABLE IF NOT EXISTS bounded_lists (
                id BIGSERIAL PRIMARY KEY,
                key TEXT NOT NULL,
                payload BYTEA NOT NULL,
                created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
            );
        ''')
        await conn.execute('''
            CREATE INDEX IF NOT EXISTS idx_bounded_lists_key_id
                ON bounded_lists(key, id DESC);
        ''')
        await conn.execute('''
            CREATE TABLE IF NOT EXISTS expiring_values (
                key TEXT PRIMARY KEY,
                payload BYTEA NOT NULL,
                expires_at TIMESTAMPTZ,
                updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
            );
        ''')

    @asynccontextmanager
    async def get_connection(self):
        """Get a connection from the pool, initializing on first use."""
        if not self._pool:
            await self.initialize()

        async with self._pool.acquire() as conn:
            yield conn

    async def append_bounded(self, key: str, record: Any, max_len: int) -> None:
        validate_max_len(max_len)
        data = serialize_record(record)
        try:
            async with self.get_connection() as conn:
                async with conn.transaction():
                    await conn.execute('SELECT pg_advisory_xact_lock(hashtext($1))', key)
                    await conn.execute(
                        'INSERT INTO bounded_lists (key, payload) VALUES ($1, $2)',
                        key, data
                    )
                    await conn.execute('''
                        DELETE FROM bounded_lists
                        WHERE key = $1 AND id NOT IN (
                            SELECT id FROM bounded_lists
                            WHERE key = $1
                            ORDER BY id DESC
                            LIMIT $2
                        )
                    ''', key, max_len)
        except (asyncpg.PostgresError, OSError) as e:
            raise StoreError(f"Postgres append to {key} failed: {e}") from e

    async def set_expiring(self, key: str, record: Any, ttl: float) -> None:
        validate_ttl(ttl)
        data = serialize_record(record)
        try:
            async with self.get_connection() as conn:
                async with conn.transaction():
                    await conn.execute('''
                        INSERT INTO expiring_values (key, payload, expires_at, updated_at)
                        VALUES (
                            $1, $2,
                            CASE WHEN $3::float8 > 0
                                THEN CURRENT_TIMESTAMP + make_interval(secs => $3::float8)
                                ELSE NULL END,
                            CURRENT_TIMESTAMP
                        )
                        ON CONFLICT (key) DO UPDATE SET
                            payload = EXCLUDED.payload,
                            expires_at = EXCLUDED.expires_at,
                            updated_at = EXCLUDED.updated_at
                    ''', key, data, float(ttl))

                self._writes_since_purge += 1
                if self._writes_since_purge >= PURGE_EVERY_WRITES:
                    self._writes_since_purge = 0
                    await self._purge_expired(conn)
        except (asyncpg.PostgresError, OSError) as e:
            raise StoreError(f"Postgres set on {key} failed: {e}") from e

    async def _purge_expired(self, conn: asyncpg.Connection) -> None:
        result = await conn.execute('''
            DELETE FROM expiring_values
            WHERE expires_at IS NOT NULL AND expires_at <= CURRENT_TIMESTAMP
        ''')
        logger.debug(f"Purged expired values: {result}")

    async def get_list(self, key: str) -> List[bytes]:
        try:
            async with self.get_connection() as conn:
                rows = await conn.fetch('''
                    SELECT payload FROM bounded_lists
                    WHERE key = $1
                    ORDER BY id DESC
                ''', key)
        except (asyncpg.PostgresError, OSError) as e:
            raise StoreError(f"Postgres read of {key} failed: {e}") from e
        return [bytes(row['payload']) for row in rows]

    async def get_value(self, key: str) -> Optional[bytes]:
        try:
            async with self.get_connection() as conn:
                payload = await conn.fetchval('''
                    SELECT payload FROM expiring_values
                    WHERE key = $1
                      AND (expires_at IS NULL OR expires_at > CURRENT_TIMESTAMP)
                ''', key)
        except (asyncpg.PostgresError, OSError) as e:
            raise StoreError(f"Postgres read of {key} failed: {e}") from e
        return bytes(payload) if payload is not None else None

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None
            self._initialized = False
            logger.info("Postgres store pool closed")
