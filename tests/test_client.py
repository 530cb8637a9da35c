"""
Unit tests for the AgentPay client.

Tests component wiring from Config and the `client.intent` facade.
"""

import os
import random
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from agentpay.analysis.base import AnalysisClient
from agentpay.analysis.chat import ChatCompletionAnalysisClient
from agentpay.client import AgentPay
from agentpay.core.config import Config
from agentpay.core.exceptions import ConfigurationError, InvalidStateTransitionError
from agentpay.core.types import PaymentIntentStatus, Provenance, Token
from agentpay.market.feed import JsonRpcMarketDataSource, SimulatedMarketDataSource
from agentpay.settlement.rpc import JsonRpcSettlement
from agentpay.settlement.simulated import SimulatedSettlement
from agentpay.storage.memory import InMemoryStorage
from agentpay.transactions.fees import JsonRpcFeeModel, SnapshotFeeModel

from conftest import FakeClock, SequentialIds


@pytest.fixture
def config() -> Config:
    return Config(log_level="WARNING", market_poll_interval=0.05)


@pytest.fixture
def client(config, analysis) -> AgentPay:
    """Client with simulated collaborators and instant settlement."""
    return AgentPay(
        config=config,
        storage=InMemoryStorage(),
        analysis=analysis,
        rng=random.Random(42),
        clock=FakeClock(),
        id_factory=SequentialIds(),
        sleep=AsyncMock(),
    )


class TestClientInitialization:
    """Tests for client wiring."""

    def test_simulated_collaborators_by_default(self, config):
        with patch.dict(os.environ, {}, clear=True):
            client = AgentPay(config=config)

        assert isinstance(client.market._source, SimulatedMarketDataSource)
        assert isinstance(client._settlement, SimulatedSettlement)
        assert isinstance(client._fee_model, SnapshotFeeModel)
        assert client._analysis is None

    def test_api_key_enables_chat_analysis(self, config):
        client = AgentPay(config=config.with_updates(analysis_api_key="sk-test-123456"))
        assert isinstance(client._analysis, ChatCompletionAnalysisClient)

    def test_live_collaborators(self, config):
        client = AgentPay(
            config=config.with_updates(simulate=False, rpc_url="http://node:8545", sender_address="0xme")
        )

        assert isinstance(client.market._source, JsonRpcMarketDataSource)
        assert isinstance(client._settlement, JsonRpcSettlement)
        assert isinstance(client._fee_model, JsonRpcFeeModel)

    def test_live_without_rpc_url_raises(self, config):
        with pytest.raises(ConfigurationError):
            AgentPay(config=config.with_updates(simulate=False))

    def test_unknown_storage_backend_raises(self, config):
        with pytest.raises(ConfigurationError):
            AgentPay(config=config.with_updates(storage_backend="sqlite"))

    def test_config_from_env(self):
        with patch.dict(os.environ, {"AGENTPAY_MAX_INTENTS": "7", "AGENTPAY_LOG_LEVEL": "ERROR"}, clear=True):
            client = AgentPay()

        assert client.config.max_intents == 7


class TestIntentFacade:
    """Tests for client.intent."""

    @pytest.mark.asyncio
    async def test_create_and_execute(self, client):
        intent = await client.intent.create(
            "Payment to 0xDEADBEEF", amount="0.5", recipient="0xDEADBEEF"
        )
        assert intent.status == PaymentIntentStatus.PENDING_APPROVAL
        assert intent.id == "intent-1"

        result = await client.intent.execute(intent.id)

        assert result.status == PaymentIntentStatus.COMPLETED
        assert result.settlement_reference.startswith("0x")
        assert len(result.settlement_reference) == 66
        assert (await client.intent.get(intent.id)).status == PaymentIntentStatus.COMPLETED

        with pytest.raises(InvalidStateTransitionError):
            await client.intent.execute(intent.id)

    @pytest.mark.asyncio
    async def test_explicit_token(self, client):
        intent = await client.intent.create("pay", amount=12, token="usdt", recipient="0x1")

        assert intent.token == Token.USDT
        assert intent.transaction.value_minor_units == 12_000_000

    @pytest.mark.asyncio
    async def test_analytics_and_listing(self, client):
        first = await client.intent.create("first", amount="1", recipient="0x1")
        await client.intent.create("second", amount="2", recipient="0x2")
        await client.intent.execute(first.id)

        analytics = await client.intent.analytics()
        recent = await client.intent.list_recent(5)

        assert analytics.total == 2
        assert analytics.completed == 1
        assert analytics.success_rate == 0.5
        assert analytics.total_amount_by_token == {Token.ETH: Decimal("1")}
        assert [i.recipient for i in recent] == ["0x2", "0x1"]

    @pytest.mark.asyncio
    async def test_cached_risk_score(self, client, analysis):
        analysis.assess_payment_risk.side_effect = None
        analysis.assess_payment_risk.return_value = {"riskScore": 55}

        await client.intent.create("pay", amount="1", recipient="0xRisky")

        assert client.intent.cached_risk_score("0xrisky") == 55


@pytest.mark.asyncio
async def test_context_manager_runs_market_feed(config):
    async with AgentPay(
        config=config, storage=InMemoryStorage(), rng=random.Random(1), sleep=AsyncMock()
    ) as client:
        assert client.market.is_running
        assert client.market.snapshot is not None
        intent = await client.intent.create("pay", amount="1", recipient="0xabc")
        assert intent.market_analysis.snapshot.source == Provenance.FEED

    assert not client.market.is_running


@pytest.mark.asyncio
async def test_close_releases_collaborators(config):
    analysis = AsyncMock(spec=AnalysisClient)
    client = AgentPay(config=config, storage=InMemoryStorage(), analysis=analysis)

    await client.close()

    analysis.close.assert_awaited_once()
