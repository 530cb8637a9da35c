"""AgentPay - Main entry point wiring the payment intent engine."""

from __future__ import annotations

import asyncio
import random
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from agentpay.analysis.base import AnalysisClient
from agentpay.analysis.chat import ChatCompletionAnalysisClient
from agentpay.core.config import Config
from agentpay.core.exceptions import ConfigurationError
from agentpay.core.logging import configure_logging, get_logger
from agentpay.core.rpc import JsonRpcClient
from agentpay.intents.engine import PaymentIntentEngine
from agentpay.intents.intent_facade import PaymentIntentFacade
from agentpay.intents.lock import IntentLockService
from agentpay.intents.parser import RequestParser
from agentpay.intents.store import IntentStore
from agentpay.market.evaluator import MarketConditionEvaluator
from agentpay.market.feed import (
    JsonRpcMarketDataSource,
    MarketDataFeed,
    MarketDataSource,
    SimulatedMarketDataSource,
    utc_now,
)
from agentpay.resilience.circuit import CircuitBreaker
from agentpay.risk.assessor import RiskAssessor
from agentpay.risk.cache import RiskScoreCache
from agentpay.settlement.base import SettlementBackend
from agentpay.settlement.rpc import JsonRpcSettlement
from agentpay.settlement.simulated import SimulatedSettlement
from agentpay.storage import get_storage
from agentpay.storage.base import StorageBackend
from agentpay.transactions.builder import TransactionBuilder
from agentpay.transactions.fees import FeeModel, JsonRpcFeeModel, SnapshotFeeModel


class AgentPay:
    """
    Main client for AgentPay.

    Builds every engine component from a Config. Collaborators passed in
    explicitly replace the ones the config would select.

    Usage:
        async with AgentPay() as client:
            intent = await client.intent.create("pay 0.5 ETH to 0xabc")
            intent = await client.intent.execute(intent.id)
    """

    def __init__(
        self,
        config: Config | None = None,
        storage: StorageBackend | None = None,
        analysis: AnalysisClient | None = None,
        settlement: SettlementBackend | None = None,
        market_source: MarketDataSource | None = None,
        fee_model: FeeModel | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize AgentPay client.

        Args:
            config: Configuration (default: Config.from_env())
            storage: Storage backend (default: from config.storage_backend)
            analysis: Analysis collaborator (default: chat completions when an
                API key is configured, otherwise always fall back)
            settlement: Settlement backend (default: simulated or JSON-RPC)
            market_source: Market data source (default: simulated or JSON-RPC)
            fee_model: Fee model (default: snapshot fallback or JSON-RPC)
            rng: Random source for simulated collaborators
            clock: Source of timezone-aware timestamps
            id_factory: Source of new intent ids
            sleep: Awaitable sleep for simulated and polling collaborators

        Raises:
            ConfigurationError: If live collaborators are selected without an RPC URL
        """
        self._config = config or Config.from_env()

        configure_logging(level=self._config.log_level)
        self._logger = get_logger("client")
        self._logger.info(
            f"Initializing AgentPay ({self._config.env}, "
            f"{'simulated' if self._config.simulate else 'live'} collaborators)"
        )

        if storage is None:
            storage_kwargs = {}
            if self._config.storage_backend == "redis" and self._config.redis_url:
                storage_kwargs["redis_url"] = self._config.redis_url
            storage = get_storage(self._config.storage_backend, **storage_kwargs)
        self._storage = storage

        if analysis is None and self._config.analysis_api_key:
            self._logger.debug(f"Analysis API key: {self._config.masked_api_key()}")
            analysis = ChatCompletionAnalysisClient.from_config(self._config)
        if analysis is None:
            self._logger.warning("No analysis API key set; parsing and risk will use defaults")
        self._analysis = analysis

        self._rpc: JsonRpcClient | None = None
        if not self._config.simulate and None in (market_source, fee_model, settlement):
            if not self._config.rpc_url:
                raise ConfigurationError(
                    "rpc_url is required when simulate is off",
                    details={"env": "AGENTPAY_RPC_URL"},
                )
            self._rpc = JsonRpcClient(self._config.rpc_url)

        rng = rng or random.Random()
        if market_source is None:
            if self._rpc is not None:
                market_source = JsonRpcMarketDataSource(
                    self._rpc, price_url=self._config.price_url, clock=clock
                )
            else:
                market_source = SimulatedMarketDataSource(rng=rng, clock=clock)
        if fee_model is None:
            if self._rpc is not None:
                fee_model = JsonRpcFeeModel(self._rpc, sender=self._config.sender_address)
            else:
                fee_model = SnapshotFeeModel()
        if settlement is None:
            if self._rpc is not None:
                settlement = JsonRpcSettlement(
                    self._rpc,
                    sender=self._config.sender_address,
                    poll_interval=self._config.receipt_poll_interval,
                    sleep=sleep,
                )
            else:
                settlement = SimulatedSettlement(rng=rng, sleep=sleep)

        self._fee_model = fee_model
        self._settlement = settlement
        self._feed = MarketDataFeed(
            market_source, interval=self._config.market_poll_interval, clock=clock
        )

        self._circuit = CircuitBreaker("analysis", self._storage)
        self._engine = PaymentIntentEngine(
            parser=RequestParser(
                self._analysis,
                circuit=self._circuit,
                default_token=self._config.default_token,
                fallback_recipient=self._config.fallback_recipient,
                timeout=self._config.analysis_timeout,
            ),
            assessor=RiskAssessor(
                self._analysis,
                circuit=self._circuit,
                cache=RiskScoreCache(self._config.risk_cache_size),
                timeout=self._config.analysis_timeout,
            ),
            evaluator=MarketConditionEvaluator(
                fee_rate_threshold=self._config.fee_rate_threshold,
                deferral=timedelta(seconds=self._config.deferral_seconds),
            ),
            builder=TransactionBuilder(fee_model, timeout=self._config.fee_timeout),
            settlement=settlement,
            store=IntentStore(self._storage, max_intents=self._config.max_intents),
            locks=IntentLockService(self._storage),
            feed=self._feed,
            clock=clock,
            settlement_timeout=self._config.settlement_timeout,
            id_factory=id_factory,
        )
        self._intent_facade = PaymentIntentFacade(self._engine)

    @property
    def config(self) -> Config:
        """Get configuration."""
        return self._config

    @property
    def storage(self) -> StorageBackend:
        return self._storage

    @property
    def engine(self) -> PaymentIntentEngine:
        """Get the payment intent engine."""
        return self._engine

    @property
    def intent(self) -> PaymentIntentFacade:
        """Get intent facade for create/execute."""
        return self._intent_facade

    @property
    def market(self) -> MarketDataFeed:
        return self._feed

    async def start(self) -> None:
        """Start market data monitoring."""
        await self._engine.start()

    async def stop(self) -> None:
        await self._engine.stop()

    async def close(self) -> None:
        """Stop monitoring and release collaborator connections."""
        await self._engine.stop()
        await self._feed.close()
        await self._fee_model.close()
        await self._settlement.close()
        if self._analysis is not None:
            await self._analysis.close()
        await self._storage.close()

    async def __aenter__(self) -> AgentPay:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
