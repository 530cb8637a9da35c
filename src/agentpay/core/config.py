"""
Configuration management for AgentPay.

Handles loading configuration from environment variables and validation.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any

from agentpay.core.types import Token

# Placeholder recipient used when nothing better can be inferred
FALLBACK_RECIPIENT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


def _get_env_var(name: str, default: str | None = None, required: bool = False) -> str | None:
    """Get environment variable with optional default."""
    value = os.environ.get(name, default)
    if required and not value:
        raise ValueError(f"Required environment variable {name} is not set")
    return value


def _env_bool(name: str, default: bool) -> bool:
    value = _get_env_var(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Config:
    """Engine configuration."""

    # Analysis collaborator (OpenAI-compatible chat completions)
    analysis_api_url: str = "https://api.deepseek.com/v1"
    analysis_api_key: str | None = None
    analysis_model: str = "deepseek-chat"

    # Chain endpoints
    rpc_url: str | None = None
    price_url: str | None = None
    sender_address: str | None = None

    # Storage
    storage_backend: str = "memory"
    redis_url: str | None = None

    # Environment & Logging
    log_level: str = "INFO"
    env: str = "development"

    # Request defaults
    default_token: Token = Token.ETH
    fallback_recipient: str = FALLBACK_RECIPIENT

    # Market evaluation
    fee_rate_threshold: Decimal = Decimal("25")  # gwei
    deferral_seconds: float = 7200.0  # congested networks wait two hours
    market_poll_interval: float = 5.0

    # Timeouts (seconds)
    analysis_timeout: float = 15.0
    fee_timeout: float = 5.0
    settlement_timeout: float = 120.0
    receipt_poll_interval: float = 1.0

    # Retention
    max_intents: int = 10_000
    risk_cache_size: int = 1_000

    # Use simulated market/settlement collaborators instead of a node
    simulate: bool = True

    def __post_init__(self) -> None:
        if self.fee_rate_threshold <= 0:
            raise ValueError("fee_rate_threshold must be positive")
        if self.market_poll_interval <= 0:
            raise ValueError("market_poll_interval must be positive")
        for name in ("analysis_timeout", "fee_timeout", "settlement_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.max_intents < 1:
            raise ValueError("max_intents must be at least 1")
        if self.risk_cache_size < 1:
            raise ValueError("risk_cache_size must be at least 1")
        if not self.fallback_recipient:
            raise ValueError("fallback_recipient is required")

    @classmethod
    def from_env(cls, **overrides: Any) -> Config:
        """Load configuration from environment variables."""
        token_str = overrides.get("default_token") or _get_env_var(
            "AGENTPAY_DEFAULT_TOKEN", default=cls.default_token.value
        )
        default_token = Token.from_string(token_str) if isinstance(token_str, str) else token_str

        threshold = overrides.get("fee_rate_threshold") or _get_env_var(
            "AGENTPAY_FEE_RATE_THRESHOLD", default=str(cls.fee_rate_threshold)
        )

        return cls(
            analysis_api_url=overrides.get("analysis_api_url")
            or _get_env_var("AGENTPAY_ANALYSIS_API_URL", default=cls.analysis_api_url),
            analysis_api_key=overrides.get("analysis_api_key")
            or _get_env_var("AGENTPAY_ANALYSIS_API_KEY"),
            analysis_model=overrides.get("analysis_model")
            or _get_env_var("AGENTPAY_ANALYSIS_MODEL", default=cls.analysis_model),
            rpc_url=overrides.get("rpc_url") or _get_env_var("AGENTPAY_RPC_URL"),
            price_url=overrides.get("price_url") or _get_env_var("AGENTPAY_PRICE_URL"),
            sender_address=overrides.get("sender_address")
            or _get_env_var("AGENTPAY_SENDER_ADDRESS"),
            storage_backend=overrides.get("storage_backend")
            or _get_env_var("AGENTPAY_STORAGE_BACKEND", default=cls.storage_backend),
            redis_url=overrides.get("redis_url") or _get_env_var("AGENTPAY_REDIS_URL"),
            log_level=overrides.get("log_level")
            or _get_env_var("AGENTPAY_LOG_LEVEL", default=cls.log_level),
            env=overrides.get("env") or _get_env_var("AGENTPAY_ENV", default=cls.env),
            default_token=default_token,
            fallback_recipient=overrides.get("fallback_recipient", cls.fallback_recipient),
            fee_rate_threshold=Decimal(str(threshold)),
            deferral_seconds=overrides.get("deferral_seconds", cls.deferral_seconds),
            market_poll_interval=float(
                overrides.get("market_poll_interval")
                or _get_env_var("AGENTPAY_MARKET_POLL_INTERVAL", default=str(cls.market_poll_interval))
            ),
            analysis_timeout=overrides.get("analysis_timeout", cls.analysis_timeout),
            fee_timeout=overrides.get("fee_timeout", cls.fee_timeout),
            settlement_timeout=float(
                overrides.get("settlement_timeout")
                or _get_env_var("AGENTPAY_SETTLEMENT_TIMEOUT", default=str(cls.settlement_timeout))
            ),
            receipt_poll_interval=overrides.get("receipt_poll_interval", cls.receipt_poll_interval),
            max_intents=int(
                overrides.get("max_intents")
                or _get_env_var("AGENTPAY_MAX_INTENTS", default=str(cls.max_intents))
            ),
            risk_cache_size=overrides.get("risk_cache_size", cls.risk_cache_size),
            simulate=overrides.get("simulate", _env_bool("AGENTPAY_SIMULATE", cls.simulate)),
        )

    def with_updates(self, **updates: Any) -> Config:
        """Create a new Config with updated values."""
        current = asdict(self)
        current.update(updates)
        return Config(**current)

    def masked_api_key(self) -> str:
        """Return API key with most characters masked for safe logging."""
        if not self.analysis_api_key or len(self.analysis_api_key) <= 8:
            return "****"
        return self.analysis_api_key[:4] + "..." + self.analysis_api_key[-4:]
