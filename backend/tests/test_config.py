"""
Tests for FlowConfig loading and validation.
"""

import json
import logging
import os
from unittest.mock import patch

import pytest

from binanceflow.config import FlowConfig, load_config, setup_logging
from binanceflow.errors import ConfigError


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Run each test in an empty directory so no config.json is picked up."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def write_config(path, data) -> str:
    path.write_text(json.dumps(data))
    return str(path)


class TestDefaults:

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            cfg = FlowConfig()

        assert cfg.BINANCE_WS_URL == "wss://fstream.binance.com"
        assert cfg.BINANCE_SYMBOLS == ["BTCUSDT"]
        assert cfg.STORE_BACKEND == "redis"
        assert cfg.REDIS_HOST == "localhost"
        assert cfg.REDIS_PORT == 6379
        assert cfg.REDIS_PASSWORD is None
        assert cfg.KLINE_MAX_ITEMS == 1000
        assert cfg.TRADES_MAX_ITEMS == 5000
        assert cfg.ORDERBOOK_TTL_SECONDS == 5.0
        assert cfg.BOOKTICKER_TTL_SECONDS == 0.5
        assert cfg.PORT == 8002
        assert cfg.is_development is True

    def test_retention_policy(self):
        with patch.dict(os.environ, {"KLINE_MAX_ITEMS": "50"}, clear=True):
            policy = FlowConfig().retention_policy

        assert policy.kline_max_items == 50
        assert policy.trades_max_items == 5000


class TestConfigFile:

    def test_file_values(self, isolated_cwd):
        path = write_config(isolated_cwd / "custom.json", {
            "redis": {"host": "cache", "port": 6380, "password": "", "db": 2},
            "binance": {"base_ws_url": "wss://example.test/", "symbols": ["btcusdt", "ethusdt"]},
            "data_retention": {"kline_max_items": 10, "trades_max_items": 20,
                               "orderbook_ttl_seconds": 2, "bookticker_ttl_seconds": 0.25},
        })

        with patch.dict(os.environ, {}, clear=True):
            cfg = load_config(path)

        assert cfg.REDIS_HOST == "cache"
        assert cfg.REDIS_PORT == 6380
        assert cfg.REDIS_PASSWORD is None
        assert cfg.REDIS_DB == 2
        assert cfg.BINANCE_WS_URL == "wss://example.test"
        assert cfg.BINANCE_SYMBOLS == ["BTCUSDT", "ETHUSDT"]
        assert cfg.KLINE_MAX_ITEMS == 10
        assert cfg.TRADES_MAX_ITEMS == 20
        assert cfg.ORDERBOOK_TTL_SECONDS == 2.0
        assert cfg.BOOKTICKER_TTL_SECONDS == 0.25

    def test_default_file_in_working_directory(self, isolated_cwd):
        write_config(isolated_cwd / "config.json", {"binance": {"symbols": ["SOLUSDT"]}})

        with patch.dict(os.environ, {}, clear=True):
            cfg = FlowConfig()

        assert cfg.BINANCE_SYMBOLS == ["SOLUSDT"]

    def test_env_overrides_file(self, isolated_cwd):
        path = write_config(isolated_cwd / "c.json", {
            "redis": {"host": "cache"},
            "binance": {"symbols": ["ETHUSDT"]},
        })

        env = {"REDIS_HOST": "override", "BINANCE_SYMBOLS": "btcusdt, solusdt"}
        with patch.dict(os.environ, env, clear=True):
            cfg = load_config(path)

        assert cfg.REDIS_HOST == "override"
        assert cfg.BINANCE_SYMBOLS == ["BTCUSDT", "SOLUSDT"]

    def test_config_path_from_env(self, isolated_cwd):
        path = write_config(isolated_cwd / "env.json", {"redis": {"db": 3}})

        with patch.dict(os.environ, {"BINANCEFLOW_CONFIG": path}, clear=True):
            cfg = FlowConfig()

        assert cfg.REDIS_DB == 3

    def test_missing_explicit_file(self, isolated_cwd):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError, match="not found"):
                load_config(str(isolated_cwd / "missing.json"))

    def test_invalid_json(self, isolated_cwd):
        path = isolated_cwd / "bad.json"
        path.write_text("{not json")

        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError):
                load_config(str(path))

    def test_non_object_json(self, isolated_cwd):
        path = write_config(isolated_cwd / "list.json", ["BTCUSDT"])

        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError, match="JSON object"):
                load_config(path)


class TestValidation:

    @pytest.mark.parametrize("env,message", [
        ({"BINANCE_SYMBOLS": " , "}, "BINANCE_SYMBOLS"),
        ({"BINANCE_WS_URL": "https://fstream.binance.com"}, "BINANCE_WS_URL"),
        ({"STORE_BACKEND": "mongodb"}, "STORE_BACKEND"),
        ({"STORE_BACKEND": "postgres"}, "DATABASE_URL"),
        ({"KLINE_MAX_ITEMS": "0"}, "KLINE_MAX_ITEMS"),
        ({"TRADES_MAX_ITEMS": "-1"}, "TRADES_MAX_ITEMS"),
        ({"ORDERBOOK_TTL_SECONDS": "-1"}, "TTL"),
        ({"LOG_LEVEL": "VERBOSE"}, "LOG_LEVEL"),
        ({"REDIS_PORT": "not-a-port"}, "REDIS_PORT"),
    ])
    def test_invalid(self, env, message):
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ConfigError, match=message):
                FlowConfig()

    def test_postgres_with_url(self):
        env = {"STORE_BACKEND": "POSTGRES", "DATABASE_URL": "postgresql://localhost/flow"}
        with patch.dict(os.environ, env, clear=True):
            cfg = FlowConfig()

        assert cfg.STORE_BACKEND == "postgres"
        assert cfg.DATABASE_URL == "postgresql://localhost/flow"

    def test_config_error_is_value_error(self):
        with patch.dict(os.environ, {"KLINE_MAX_ITEMS": "0"}, clear=True):
            with pytest.raises(ValueError):
                FlowConfig()


class TestSetupLogging:

    def test_returns_package_logger(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "WARNING"}, clear=True):
            cfg = FlowConfig()

        with patch("logging.basicConfig") as mock_basic_config:
            logger = setup_logging(cfg)

        assert logger.name == "binanceflow"
        assert mock_basic_config.call_args.kwargs["level"] == logging.WARNING
        assert logging.getLogger("websockets").level == logging.INFO
