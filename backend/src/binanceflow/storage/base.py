"""Abstract bounded store and record serialization."""

import json
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from pydantic import BaseModel

from ..errors import StoreError


def serialize_record(record: Any) -> bytes:
    """
    Serialize a record to bytes for storage.

    Pydantic models are dumped with their wire aliases; bytes pass through;
    anything else must be JSON serializable.
    """
    if isinstance(record, (bytes, bytearray)):
        return bytes(record)
    if isinstance(record, str):
        return record.encode("utf-8")
    if isinstance(record, BaseModel):
        return record.model_dump_json(by_alias=True).encode("utf-8")
    try:
        return json.dumps(record, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise StoreError(f"Cannot serialize {type(record).__name__}: {e}") from e


def validate_max_len(max_len: int) -> None:
    if max_len <= 0:
        raise ValueError(f"max_len must be positive, got {max_len}")


def validate_ttl(ttl: float) -> None:
    if ttl < 0:
        raise ValueError(f"ttl must be >= 0, got {ttl}")


class BoundedStore(ABC):
    """
    Keyed storage with capped lists and expiring scalars.

    Implementations must make append+trim and set+expire atomic per key,
    either natively or through a transaction. Failures are raised as
    StoreError; nothing is retried internally.
    """

    name = "abstract"

    async def initialize(self) -> None:
        """Open connections and verify the backend is reachable."""
        return None

    @abstractmethod
    async def append_bounded(self, key: str, record: Any, max_len: int) -> None:
        """Prepend ``record`` to the list at ``key`` and keep the newest ``max_len`` entries."""

    @abstractmethod
    async def set_expiring(self, key: str, record: Any, ttl: float) -> None:
        """Replace the value at ``key``; it expires after ``ttl`` seconds (0 = never)."""

    @abstractmethod
    async def get_list(self, key: str) -> List[bytes]:
        """Return the list at ``key``, most recent first."""

    @abstractmethod
    async def get_value(self, key: str) -> Optional[bytes]:
        """Return the live value at ``key`` or None if missing or expired."""

    async def close(self) -> None:
        return None
