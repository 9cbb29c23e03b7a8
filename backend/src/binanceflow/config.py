"""
Configuration management for Binance Flow.

Values come from environment variables (a .env file is loaded first),
then from an optional JSON config file, then from defaults. The JSON
file uses the sections ``redis``, ``binance`` and ``data_retention``.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from dotenv import load_dotenv

from .errors import ConfigError
from .storage.factory import STORE_BACKENDS
from .storage.market_data import (
    DEFAULT_BOOKTICKER_TTL_SECONDS,
    DEFAULT_KLINE_MAX_ITEMS,
    DEFAULT_ORDERBOOK_TTL_SECONDS,
    DEFAULT_TRADES_MAX_ITEMS,
    RetentionPolicy,
)

# Load environment variables from .env file
load_dotenv()

DEFAULT_CONFIG_PATH = "config.json"
DEFAULT_WS_URL = "wss://fstream.binance.com"
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _load_file(path: Optional[str]) -> Dict[str, Any]:
    """Read the JSON config file. A missing default file is not an error."""
    explicit = path is not None
    path = path or os.getenv("BINANCEFLOW_CONFIG", DEFAULT_CONFIG_PATH)
    explicit = explicit or "BINANCEFLOW_CONFIG" in os.environ

    config_file = Path(path)
    if not config_file.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        return {}

    try:
        with config_file.open() as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def _parse_symbols(value: Any) -> List[str]:
    if isinstance(value, str):
        value = value.split(",")
    return [str(s).strip().upper() for s in value if str(s).strip()]


class FlowConfig:
    """Configuration for the ingestion service."""

    def __init__(self, config_path: Optional[str] = None):
        self._file = _load_file(config_path)
        redis_cfg = self._file.get("redis", {})
        binance_cfg = self._file.get("binance", {})
        retention_cfg = self._file.get("data_retention", {})

        # Binance stream
        self.BINANCE_WS_URL: str = self._get(
            "BINANCE_WS_URL", binance_cfg.get("base_ws_url"), DEFAULT_WS_URL, str
        ).rstrip("/")
        self.BINANCE_SYMBOLS: List[str] = self._get(
            "BINANCE_SYMBOLS", binance_cfg.get("symbols"), ["BTCUSDT"], _parse_symbols
        )

        # Store backend
        self.STORE_BACKEND: str = self._get("STORE_BACKEND", None, "redis", str).lower()

        # Redis
        self.REDIS_HOST: str = self._get("REDIS_HOST", redis_cfg.get("host"), "localhost", str)
        self.REDIS_PORT: int = self._get("REDIS_PORT", redis_cfg.get("port"), 6379, int)
        self.REDIS_PASSWORD: Optional[str] = self._get(
            "REDIS_PASSWORD", redis_cfg.get("password"), None, str
        ) or None
        self.REDIS_DB: int = self._get("REDIS_DB", redis_cfg.get("db"), 0, int)

        # PostgreSQL (postgres backend only)
        self.DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")
        self.DB_POOL_MIN_SIZE: int = int(os.getenv("DB_POOL_MIN_SIZE", "1"))
        self.DB_POOL_MAX_SIZE: int = int(os.getenv("DB_POOL_MAX_SIZE", "5"))

        # Retention. These limits are authoritative: the store trims to exactly these sizes.
        self.KLINE_MAX_ITEMS: int = self._get(
            "KLINE_MAX_ITEMS", retention_cfg.get("kline_max_items"), DEFAULT_KLINE_MAX_ITEMS, int
        )
        self.TRADES_MAX_ITEMS: int = self._get(
            "TRADES_MAX_ITEMS", retention_cfg.get("trades_max_items"), DEFAULT_TRADES_MAX_ITEMS, int
        )
        self.ORDERBOOK_TTL_SECONDS: float = self._get(
            "ORDERBOOK_TTL_SECONDS", retention_cfg.get("orderbook_ttl_seconds"),
            DEFAULT_ORDERBOOK_TTL_SECONDS, float
        )
        self.BOOKTICKER_TTL_SECONDS: float = self._get(
            "BOOKTICKER_TTL_SECONDS", retention_cfg.get("bookticker_ttl_seconds"),
            DEFAULT_BOOKTICKER_TTL_SECONDS, float
        )

        # WebSocket settings
        self.WEBSOCKET_PING_INTERVAL: float = float(os.getenv("WEBSOCKET_PING_INTERVAL", "20"))
        self.WEBSOCKET_PING_TIMEOUT: float = float(os.getenv("WEBSOCKET_PING_TIMEOUT", "20"))
        self.WEBSOCKET_OPEN_TIMEOUT: float = float(os.getenv("WEBSOCKET_OPEN_TIMEOUT", "10"))
        self.WEBSOCKET_CLOSE_TIMEOUT: float = float(os.getenv("WEBSOCKET_CLOSE_TIMEOUT", "5"))

        # Logging
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_FORMAT: str = os.getenv("LOG_FORMAT", DEFAULT_LOG_FORMAT)

        # Status server
        self.HOST: str = os.getenv("HOST", "0.0.0.0")
        self.PORT: int = int(os.getenv("PORT", "8002"))

        self.ENVIRONMENT: str = os.getenv("ENVIRONMENT", "local")
        self.DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

        self._validate_config()

    def _get(self, env_key: str, file_value: Any, default: Any, cast: Callable[[Any], Any]) -> Any:
        """Environment variable, then config file value, then default."""
        raw = os.getenv(env_key)
        if raw is None or raw == "":
            raw = file_value
        if raw is None or raw == "":
            return default
        try:
            return cast(raw)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value for {env_key}: {raw!r}") from e

    def _validate_config(self) -> None:
        """Validate configuration values."""
        if not self.BINANCE_SYMBOLS:
            raise ConfigError("BINANCE_SYMBOLS cannot be empty")

        if not self.BINANCE_WS_URL.startswith(("ws://", "wss://")):
            raise ConfigError(f"BINANCE_WS_URL must be a ws:// or wss:// URL, got {self.BINANCE_WS_URL}")

        if self.STORE_BACKEND not in STORE_BACKENDS:
            raise ConfigError(
                f"STORE_BACKEND must be one of {STORE_BACKENDS}, got {self.STORE_BACKEND!r}"
            )

        if self.STORE_BACKEND == "postgres" and not self.DATABASE_URL:
            raise ConfigError("DATABASE_URL is required when STORE_BACKEND=postgres")

        if self.KLINE_MAX_ITEMS <= 0:
            raise ConfigError("KLINE_MAX_ITEMS must be positive")

        if self.TRADES_MAX_ITEMS <= 0:
            raise ConfigError("TRADES_MAX_ITEMS must be positive")

        if self.ORDERBOOK_TTL_SECONDS < 0 or self.BOOKTICKER_TTL_SECONDS < 0:
            raise ConfigError("TTL values must be >= 0")

        if self.LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"Invalid LOG_LEVEL: {self.LOG_LEVEL}")

    @property
    def retention_policy(self) -> RetentionPolicy:
        return RetentionPolicy(
            kline_max_items=self.KLINE_MAX_ITEMS,
            trades_max_items=self.TRADES_MAX_ITEMS,
            orderbook_ttl=self.ORDERBOOK_TTL_SECONDS,
            bookticker_ttl=self.BOOKTICKER_TTL_SECONDS,
        )

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT in ["local", "development"]


def load_config(path: Optional[str] = None) -> FlowConfig:
    """Build a FlowConfig, reading ``path`` as the JSON config file if given."""
    return FlowConfig(config_path=path)


def setup_logging(cfg: FlowConfig) -> logging.Logger:
    """Configure root logging once and return the package logger."""
    logging.basicConfig(
        level=getattr(logging, cfg.LOG_LEVEL),
        format=cfg.LOG_FORMAT
    )
    # websockets logs every frame at DEBUG
    if cfg.LOG_LEVEL != "DEBUG":
        logging.getLogger("websockets").setLevel(logging.INFO)
    return logging.getLogger("binanceflow")
