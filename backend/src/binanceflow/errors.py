"""Error hierarchy for the Binance Flow ingestion pipeline.

Transport errors (connect/receive) end a session and propagate to the
caller. Payload errors (handler/store) are isolated to a single frame.
"""


class BinanceFlowError(Exception):
    """Base exception for all Binance Flow errors."""
    pass


class ConnectError(BinanceFlowError):
    """Dial failure, handshake rejection, timeout or cancellation while connecting."""
    pass


class ReceiveError(BinanceFlowError):
    """Unrecoverable transport fault while waiting for the next frame."""
    pass


class CloseError(BinanceFlowError):
    """Failure while closing the transport. Logged, never blocks shutdown."""
    pass


class HandlerError(BinanceFlowError):
    """A handler could not decode or persist its payload."""

    def __init__(self, message: str, stream_type: str = ""):
        super().__init__(message)
        self.stream_type = stream_type


class StoreError(HandlerError):
    """Serialization or backend failure in the bounded store."""
    pass


class ConfigError(BinanceFlowError, ValueError):
    """Invalid configuration value."""
    pass
