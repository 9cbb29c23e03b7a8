"""
Message router for combined-stream frames.

A frame is classified in a fixed order:

1. Enveloped: ``{"stream": "<symbol>@<kind>[@<param>]", "data": {...}}``.
   The stream type is the second ``@`` segment (``btcusdt@depth20@100ms``
   -> ``depth20``) and the handler receives the ``data`` value exactly as it
   appears in the frame, sliced from the raw text rather than re-encoded.
2. Direct: a flat object with an ``e`` discriminator. The handler is looked
   up by the discriminator and receives the whole frame.

A frame that would satisfy both shapes is treated as enveloped. Frames
that are neither, and frames with no registered handler, are logged and
skipped. Handler failures are logged and reported in the outcome; they
never escape ``route``.
"""

import inspect
import json
import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Set, Union

from .registry import HandlerRegistry

logger = logging.getLogger("binanceflow.router")

TOPIC_DELIMITER = "@"
DISCRIMINATOR_FIELD = "e"
PREVIEW_LENGTH = 200

_WHITESPACE = re.compile(r"[ \t\n\r]*")
_DECODER = json.JSONDecoder()


class FrameFormat(str, Enum):
    ENVELOPED = "enveloped"
    DIRECT = "direct"


class RouteStatus(str, Enum):
    ROUTED = "routed"
    HANDLER_FAILED = "handler_failed"
    MALFORMED = "malformed"
    UNROUTED = "unrouted"


@dataclass(frozen=True)
class RouteOutcome:
    """Result of routing one frame."""
    status: RouteStatus
    frame_format: Optional[FrameFormat] = None
    stream_type: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == RouteStatus.ROUTED


@dataclass(frozen=True)
class DecodedFrame:
    frame_format: FrameFormat
    stream_type: str
    payload: bytes


class MalformedFrameError(ValueError):
    """Frame is neither a valid envelope nor a valid direct message."""
    pass


def _to_bytes(frame: Union[str, bytes, bytearray]) -> bytes:
    if isinstance(frame, str):
        try:
            return frame.encode("utf-8")
        except UnicodeEncodeError as e:
            raise MalformedFrameError(f"Frame is not valid UTF-8: {e}") from e
    return bytes(frame)


def _preview(frame: Union[str, bytes, bytearray]) -> str:
    if isinstance(frame, (bytes, bytearray)):
        frame = bytes(frame).decode("utf-8", errors="replace")
    return frame[:PREVIEW_LENGTH]


def stream_type_from_stream(stream: str) -> str:
    """
    Extract the stream type from an envelope's stream name.

    Raises:
        MalformedFrameError: fewer than two ``@``-delimited segments
    """
    parts = stream.split(TOPIC_DELIMITER)
    if len(parts) < 2 or not parts[1]:
        raise MalformedFrameError(f"Invalid stream format: {stream!r}")
    return parts[1]


def _skip_whitespace(text: str, idx: int) -> int:
    return _WHITESPACE.match(text, idx).end()


def raw_member(text: str, name: str) -> str:
    """
    Return the source text of the top-level member ``name`` of a JSON object.

    The value is sliced from ``text`` as sent, so number formatting and
    string escapes are preserved. A repeated member resolves to its last
    occurrence, as ``json.loads`` does.

    Raises:
        MalformedFrameError: not an object, or ``name`` is absent
    """
    try:
        idx = _skip_whitespace(text, 0)
        if text[idx:idx + 1] != "{":
            raise MalformedFrameError("Frame is not a JSON object")
        idx = _skip_whitespace(text, idx + 1)

        span = None
        if text[idx:idx + 1] != "}":
            while True:
                key, idx = _DECODER.raw_decode(text, idx)
                idx = _skip_whitespace(text, idx)
                if text[idx:idx + 1] != ":":
                    raise MalformedFrameError(f"Expected ':' at offset {idx}")
                start = _skip_whitespace(text, idx + 1)
                _, end = _DECODER.raw_decode(text, start)
                if key == name:
                    span = (start, end)

                idx = _skip_whitespace(text, end)
                separator = text[idx:idx + 1]
                if separator == ",":
                    idx = _skip_whitespace(text, idx + 1)
                elif separator == "}":
                    break
                else:
                    raise MalformedFrameError(f"Expected ',' or '}}' at offset {idx}")
    except json.JSONDecodeError as e:
        raise MalformedFrameError(f"Frame is not valid JSON: {e}") from e

    if span is None:
        raise MalformedFrameError(f"Frame has no {name!r} member")
    return text[span[0]:span[1]]


def decode_frame(frame: Union[str, bytes, bytearray]) -> DecodedFrame:
    """
    Classify a raw frame and extract its stream type and handler payload.

    Raises:
        MalformedFrameError: not JSON, or neither an envelope nor a direct message
    """
    try:
        text = frame if isinstance(frame, str) else bytes(frame).decode("utf-8")
        message = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        raise MalformedFrameError(f"Frame is not valid JSON: {e}") from e

    if not isinstance(message, dict):
        raise MalformedFrameError(f"Frame is not a JSON object: {type(message).__name__}")

    stream = message.get("stream")
    if isinstance(stream, str) and "data" in message:
        stream_type = stream_type_from_stream(stream)
        return DecodedFrame(FrameFormat.ENVELOPED, stream_type, _to_bytes(raw_member(text, "data")))

    event_type = message.get(DISCRIMINATOR_FIELD)
    if isinstance(event_type, str) and event_type:
        return DecodedFrame(FrameFormat.DIRECT, event_type, _to_bytes(frame))

    raise MalformedFrameError("Frame has neither a stream envelope nor an event type")


class MessageRouter:
    """
    Routes frames to registered handlers and counts the outcomes.

    Handlers run inline: ``route`` returns only after the handler (and its
    store write) has finished, which keeps delivery in frame order.
    """

    def __init__(self):
        self._outcomes: Dict[RouteStatus, int] = {status: 0 for status in RouteStatus}
        self._routed_by_type: Dict[str, int] = defaultdict(int)
        self._failed_by_type: Dict[str, int] = defaultdict(int)
        self._unrouted_types: Set[str] = set()
        self._last_error: Optional[str] = None

    async def route(self, frame: Union[str, bytes, bytearray], registry: HandlerRegistry) -> RouteOutcome:
        """
        Decode one frame and dispatch it to its handler.

        Args:
            frame: Raw frame from the connection
            registry: Handler lookup table

        Returns:
            RouteOutcome describing what happened to the frame
        """
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Raw message received: {_preview(frame)}")

        try:
            decoded = decode_frame(frame)
        except MalformedFrameError as e:
            logger.warning(f"Skipping malformed frame: {e} (frame: {_preview(frame)!r})")
            return self._record(RouteOutcome(RouteStatus.MALFORMED, error=str(e)))
        except Exception as e:
            # A frame must never take the loop down, whatever the decoder trips over.
            logger.error(f"Unexpected error decoding frame: {e} (frame: {_preview(frame)!r})")
            return self._record(RouteOutcome(RouteStatus.MALFORMED, error=str(e)))

        stream_type = decoded.stream_type
        handler = registry.lookup(stream_type)
        if handler is None:
            if stream_type not in self._unrouted_types:
                self._unrouted_types.add(stream_type)
                logger.warning(
                    f"No handler registered for {decoded.frame_format.value} stream type: {stream_type}"
                )
            else:
                logger.debug(f"No handler registered for stream type: {stream_type}")
            return self._record(RouteOutcome(
                RouteStatus.UNROUTED, decoded.frame_format, stream_type,
                error=f"No handler registered for {stream_type}",
            ))

        try:
            result = handler(decoded.payload)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Error handling {decoded.frame_format.value} message for {stream_type}: {e}")
            self._failed_by_type[stream_type] += 1
            return self._record(RouteOutcome(
                RouteStatus.HANDLER_FAILED, decoded.frame_format, stream_type, error=str(e)
            ))

        self._routed_by_type[stream_type] += 1
        return self._record(RouteOutcome(RouteStatus.ROUTED, decoded.frame_format, stream_type))

    def _record(self, outcome: RouteOutcome) -> RouteOutcome:
        self._outcomes[outcome.status] += 1
        if outcome.error and outcome.status != RouteStatus.UNROUTED:
            self._last_error = outcome.error
        return outcome

    def get_stats(self) -> Dict[str, Any]:
        return {
            "frames": sum(self._outcomes.values()),
            "outcomes": {status.value: count for status, count in self._outcomes.items()},
            "routed_by_type": dict(self._routed_by_type),
            "failed_by_type": dict(self._failed_by_type),
            "unrouted_types": sorted(self._unrouted_types),
            "last_error": self._last_error,
        }
