"""Build the configured BoundedStore backend."""

import logging

from ..errors import ConfigError
from .base import BoundedStore
from .memory_store import MemoryBoundedStore
from .postgres_store import PostgresBoundedStore
from .redis_store import RedisBoundedStore

logger = logging.getLogger("binanceflow.storage.factory")

STORE_BACKENDS = ("redis", "postgres", "memory")


def create_store(cfg) -> BoundedStore:
    """
    Create (but do not initialize) the store backend named by ``cfg.STORE_BACKEND``.

    Args:
        cfg: FlowConfig instance
    """
    backend = cfg.STORE_BACKEND
    if backend == "redis":
        store = RedisBoundedStore(
            host=cfg.REDIS_HOST,
            port=cfg.REDIS_PORT,
            password=cfg.REDIS_PASSWORD,
            db=cfg.REDIS_DB,
        )
    elif backend == "postgres":
        store = PostgresBoundedStore(
            database_url=cfg.DATABASE_URL,
            min_size=cfg.DB_POOL_MIN_SIZE,
            max_size=cfg.DB_POOL_MAX_SIZE,
        )
    elif backend == "memory":
        store = MemoryBoundedStore()
    else:
        raise ConfigError(f"Unknown store backend: {backend!r} (expected one of {STORE_BACKENDS})")

    logger.info(f"Using {store.name} store backend")
    return store
