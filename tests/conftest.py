from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from agentpay.analysis.base import AnalysisClient
from agentpay.core.exceptions import CollaboratorError
from agentpay.intents.engine import PaymentIntentEngine
from agentpay.intents.lock import IntentLockService
from agentpay.intents.parser import RequestParser
from agentpay.intents.store import IntentStore
from agentpay.market.evaluator import MarketConditionEvaluator
from agentpay.risk.assessor import RiskAssessor
from agentpay.settlement.base import SettlementBackend
from agentpay.storage.memory import InMemoryStorage
from agentpay.transactions.builder import TransactionBuilder

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock that advances one second per reading."""

    def __init__(self, start: datetime = T0, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


class SequentialIds:
    def __init__(self, prefix: str = "intent") -> None:
        self.prefix = prefix
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        return f"{self.prefix}-{self.count}"


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def analysis():
    """Analysis collaborator that fails every call unless a test overrides it."""
    mock = AsyncMock(spec=AnalysisClient)
    mock.parse_payment_request.side_effect = CollaboratorError("offline", "analysis")
    mock.assess_payment_risk.side_effect = CollaboratorError("offline", "analysis")
    return mock


@pytest.fixture
def settlement():
    mock = AsyncMock(spec=SettlementBackend)
    mock.submit.return_value = "0x" + "ab" * 32
    return mock


@pytest.fixture
def engine(storage, analysis, settlement, clock):
    return PaymentIntentEngine(
        parser=RequestParser(analysis, timeout=1.0),
        assessor=RiskAssessor(analysis, timeout=1.0),
        evaluator=MarketConditionEvaluator(),
        builder=TransactionBuilder(),
        settlement=settlement,
        store=IntentStore(storage, max_intents=100),
        locks=IntentLockService(storage),
        clock=clock,
        id_factory=SequentialIds(),
        settlement_timeout=5.0,
    )
