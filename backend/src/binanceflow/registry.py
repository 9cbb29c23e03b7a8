"""
Handler registry mapping stream types to payload handlers.

Handlers are registered before the ingestion loop starts. Late
registration is allowed: writes are serialized with a lock and publish
a fresh dict (copy-on-write), so lookups from the dispatch path never
take the lock. A frame that has already been dispatched keeps the handler
it looked up, so a replacement takes effect from the next frame on.
"""

import logging
import threading
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

logger = logging.getLogger("binanceflow.registry")

# A handler takes the payload bytes and raises on failure. Coroutine
# functions are awaited by the router.
Handler = Callable[[bytes], Union[None, Awaitable[None], Any]]


def _key(stream_type: Union[str, Enum]) -> str:
    if isinstance(stream_type, Enum):
        return str(stream_type.value)
    return str(stream_type)


class HandlerRegistry:
    """
    Stream type -> handler mapping.

    Keys may be given as ``StreamType``/``EventType`` members or raw strings;
    both normalise to the same string key. Registering a type twice replaces
    the previous handler (last registration wins).
    """

    def __init__(self):
        self._handlers: Dict[str, Handler] = {}
        self._write_lock = threading.Lock()

    def register(self, stream_type: Union[str, Enum], handler: Handler) -> None:
        """
        Register a handler for a stream type.

        Args:
            stream_type: Stream type or direct-event discriminator
            handler: Callable taking payload bytes; may be a coroutine function
        """
        if not callable(handler):
            raise TypeError(f"Handler for {stream_type!r} must be callable")

        key = _key(stream_type)
        if not key:
            raise ValueError("Stream type must be a non-empty string")

        with self._write_lock:
            handlers = dict(self._handlers)
            replaced = key in handlers
            handlers[key] = handler
            self._handlers = handlers

        if replaced:
            logger.info(f"Replaced handler for stream type: {key}")
        else:
            logger.debug(f"Registered handler for stream type: {key}")

    def unregister(self, stream_type: Union[str, Enum]) -> bool:
        """Remove a handler. Returns True if one was registered."""
        key = _key(stream_type)
        with self._write_lock:
            if key not in self._handlers:
                return False
            handlers = dict(self._handlers)
            del handlers[key]
            self._handlers = handlers
        logger.info(f"Unregistered handler for stream type: {key}")
        return True

    def lookup(self, stream_type: Union[str, Enum]) -> Optional[Handler]:
        """Return the handler for a stream type, or None if unregistered."""
        return self._handlers.get(_key(stream_type))

    def stream_types(self) -> List[str]:
        return sorted(self._handlers)

    def __contains__(self, stream_type: Union[str, Enum]) -> bool:
        return _key(stream_type) in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
