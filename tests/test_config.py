"""Unit tests for config module."""

import os
from decimal import Decimal
from unittest.mock import patch

import pytest

from agentpay.core.config import FALLBACK_RECIPIENT, Config
from agentpay.core.types import Token


class TestConfig:
    """Tests for Config class."""

    def test_defaults(self) -> None:
        """Test documented defaults."""
        config = Config()

        assert config.default_token == Token.ETH
        assert config.fallback_recipient == FALLBACK_RECIPIENT
        assert config.fee_rate_threshold == Decimal("25")
        assert config.deferral_seconds == 7200.0
        assert config.storage_backend == "memory"
        assert config.simulate is True

    def test_config_is_immutable(self) -> None:
        """Test that config is frozen (immutable)."""
        config = Config()

        with pytest.raises(AttributeError):
            config.max_intents = 5  # type: ignore

    @pytest.mark.parametrize(
        "field,value",
        [
            ("fee_rate_threshold", Decimal("0")),
            ("settlement_timeout", 0),
            ("max_intents", 0),
            ("risk_cache_size", 0),
            ("fallback_recipient", ""),
        ],
    )
    def test_invalid_values_raise(self, field, value) -> None:
        with pytest.raises(ValueError):
            Config(**{field: value})

    def test_with_updates(self) -> None:
        """Test with_updates returns a new config."""
        config = Config()
        updated = config.with_updates(max_intents=50, simulate=False)

        assert updated.max_intents == 50
        assert updated.simulate is False
        assert config.max_intents == 10_000

    def test_masked_api_key(self) -> None:
        assert Config(analysis_api_key="sk-1234567890abcd").masked_api_key() == "sk-1...abcd"
        assert Config().masked_api_key() == "****"


class TestConfigFromEnv:
    """Tests for Config.from_env."""

    def test_reads_environment(self) -> None:
        env = {
            "AGENTPAY_ANALYSIS_API_KEY": "env-key-123456",
            "AGENTPAY_RPC_URL": "http://node:8545",
            "AGENTPAY_DEFAULT_TOKEN": "cro",
            "AGENTPAY_FEE_RATE_THRESHOLD": "30",
            "AGENTPAY_SETTLEMENT_TIMEOUT": "45",
            "AGENTPAY_MAX_INTENTS": "500",
            "AGENTPAY_SIMULATE": "false",
        }
        with patch.dict(os.environ, env, clear=True):
            config = Config.from_env()

        assert config.analysis_api_key == "env-key-123456"
        assert config.rpc_url == "http://node:8545"
        assert config.default_token == Token.CRO
        assert config.fee_rate_threshold == Decimal("30")
        assert config.settlement_timeout == 45.0
        assert config.max_intents == 500
        assert config.simulate is False

    def test_overrides_win(self) -> None:
        with patch.dict(os.environ, {"AGENTPAY_LOG_LEVEL": "WARNING"}, clear=True):
            config = Config.from_env(log_level="DEBUG", default_token=Token.USDC)

        assert config.log_level == "DEBUG"
        assert config.default_token == Token.USDC

    def test_empty_environment_uses_defaults(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            config = Config.from_env()

        assert config == Config()

    def test_unknown_token_raises(self) -> None:
        with patch.dict(os.environ, {"AGENTPAY_DEFAULT_TOKEN": "DOGE"}, clear=True):
            with pytest.raises(ValueError):
                Config.from_env()
