"""Tests for data model invariants, the state machine and serialization."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from agentpay.core.exceptions import InvalidStateTransitionError
from agentpay.core.types import (
    Congestion,
    ExecutionTiming,
    FailureCode,
    MarketAnalysis,
    MarketSnapshot,
    PaymentIntent,
    PaymentIntentStatus,
    PaymentRequest,
    Provenance,
    RiskAssessment,
    Token,
    TransactionData,
    Urgency,
)

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def make_intent(status=PaymentIntentStatus.PENDING_APPROVAL) -> PaymentIntent:
    snapshot = MarketSnapshot(
        price=Decimal("2200"),
        fee_rate=Decimal("20"),
        congestion=Congestion.NORMAL,
        timestamp=NOW,
        source=Provenance.FALLBACK,
    )
    return PaymentIntent(
        id="intent-1",
        request=PaymentRequest(amount=Decimal("0.5"), token=Token.ETH, recipient="0xabc"),
        risk_assessment=RiskAssessment(score=20),
        market_analysis=MarketAnalysis(
            snapshot=snapshot,
            conditions=("execute_when_network_clear",),
            timing=ExecutionTiming.deferred(timedelta(hours=2)),
        ),
        transaction=TransactionData(
            destination="0xabc",
            token=Token.ETH,
            value_minor_units=500000000000000000,
            gas_limit=21000,
            fee_rate=20_000_000_000,
            estimated_fee=21000 * 20_000_000_000,
            payload=b"\x01\x02",
        ),
        status=status,
        created_at=NOW,
    )


class TestEnums:
    def test_token_from_string(self):
        assert Token.from_string(" usdc ") == Token.USDC
        assert Token.ETH.decimals == 18
        assert Token.USDT.decimals == 6
        assert Token.CRO.is_native()
        assert not Token.USDC.is_native()

    def test_unknown_token(self):
        with pytest.raises(ValueError):
            Token.from_string("DOGE")

    def test_urgency_from_string(self):
        assert Urgency.from_string("HIGH") == Urgency.HIGH


class TestStateMachine:
    def test_allowed_transitions(self):
        pending = PaymentIntentStatus.PENDING_APPROVAL
        executing = PaymentIntentStatus.EXECUTING
        assert pending.can_transition_to(executing)
        assert executing.can_transition_to(PaymentIntentStatus.COMPLETED)
        assert executing.can_transition_to(PaymentIntentStatus.FAILED)
        assert not pending.can_transition_to(PaymentIntentStatus.COMPLETED)

    def test_terminal_states_have_no_exits(self):
        for terminal in (PaymentIntentStatus.COMPLETED, PaymentIntentStatus.FAILED):
            assert terminal.is_terminal()
            assert not any(terminal.can_transition_to(s) for s in PaymentIntentStatus)

    def test_transition_stamps_timestamps(self):
        intent = make_intent()
        later = NOW + timedelta(seconds=5)
        intent.transition_to(PaymentIntentStatus.EXECUTING, NOW)
        intent.transition_to(PaymentIntentStatus.COMPLETED, later, settlement_reference="0xhash")

        assert intent.execution_started_at == NOW
        assert intent.completed_at == later
        assert intent.settlement_reference == "0xhash"
        assert intent.failed_at is None

    def test_invalid_transition_leaves_intent_unchanged(self):
        intent = make_intent()
        before = intent.to_dict()

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            intent.transition_to(PaymentIntentStatus.COMPLETED, NOW)

        assert exc_info.value.current == "pending_approval"
        assert exc_info.value.target == "completed"
        assert intent.to_dict() == before

    def test_failed_records_error_code(self):
        intent = make_intent(PaymentIntentStatus.EXECUTING)
        intent.transition_to(
            PaymentIntentStatus.FAILED, NOW, error="boom", error_code=FailureCode.TIMEOUT
        )
        assert intent.error == "boom"
        assert intent.error_code == FailureCode.TIMEOUT


class TestValueObjects:
    def test_request_rejects_non_positive_amount(self):
        with pytest.raises(ValueError):
            PaymentRequest(amount=Decimal("0"), token=Token.ETH, recipient="0xabc")

    def test_request_rejects_blank_recipient(self):
        with pytest.raises(ValueError):
            PaymentRequest(amount=Decimal("1"), token=Token.ETH, recipient="  ")

    def test_risk_score_bounds(self):
        with pytest.raises(ValueError):
            RiskAssessment(score=101)


def test_intent_serialization_preserves_exact_values():
    intent = make_intent()
    restored = PaymentIntent.from_dict(intent.to_dict())

    assert restored == intent
    assert restored.transaction.payload == b"\x01\x02"
    assert restored.market_analysis.timing.delay == timedelta(hours=2)
    assert intent.to_dict()["transaction"]["value_minor_units"] == "500000000000000000"
