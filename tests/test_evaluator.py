"""Tests for MarketConditionEvaluator."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from agentpay.core.types import (
    Congestion,
    CostOptimization,
    MarketSnapshot,
    PaymentRequest,
    Provenance,
    TimingKind,
    Token,
)
from agentpay.market.evaluator import MarketConditionEvaluator, fee_condition

REQUEST = PaymentRequest(amount=Decimal("1"), token=Token.ETH, recipient="0xabc")


def snapshot(fee_rate="20", congestion=Congestion.NORMAL) -> MarketSnapshot:
    return MarketSnapshot(
        price=Decimal("2200"),
        fee_rate=Decimal(fee_rate),
        congestion=congestion,
        timestamp=datetime(2024, 5, 1, tzinfo=timezone.utc),
        source=Provenance.FEED,
    )


def test_calm_market_executes_immediately():
    analysis = MarketConditionEvaluator().evaluate(REQUEST, snapshot())

    assert analysis.conditions == ()
    assert analysis.timing.kind == TimingKind.IMMEDIATE
    assert analysis.cost_optimization == CostOptimization.EXECUTE_NOW


def test_high_fee_rate_adds_wait_condition():
    analysis = MarketConditionEvaluator().evaluate(REQUEST, snapshot(fee_rate="30"))

    assert analysis.conditions == ("wait_fee_below_25",)
    assert analysis.cost_optimization == CostOptimization.DELAY_EXECUTION
    assert not analysis.timing.is_deferred


def test_fee_rate_at_threshold_is_not_high():
    analysis = MarketConditionEvaluator().evaluate(REQUEST, snapshot(fee_rate="25"))
    assert analysis.conditions == ()


def test_high_congestion_defers():
    analysis = MarketConditionEvaluator().evaluate(
        REQUEST, snapshot(fee_rate="40", congestion=Congestion.HIGH)
    )

    assert analysis.conditions == ("wait_fee_below_25", "execute_when_network_clear")
    assert analysis.timing.kind == TimingKind.DEFERRED
    assert analysis.timing.delay == timedelta(hours=2)


def test_configured_threshold_and_deferral():
    evaluator = MarketConditionEvaluator(
        fee_rate_threshold=Decimal("12.5"), deferral=timedelta(minutes=30)
    )
    analysis = evaluator.evaluate(REQUEST, snapshot(fee_rate="13", congestion=Congestion.HIGH))

    assert analysis.conditions[0] == "wait_fee_below_12.5"
    assert analysis.timing.delay == timedelta(minutes=30)


@pytest.mark.parametrize("threshold,expected", [("25", "25"), ("20.0", "20"), ("7.50", "7.5")])
def test_fee_condition_format(threshold, expected):
    assert fee_condition(Decimal(threshold)) == f"wait_fee_below_{expected}"


def test_snapshot_is_carried_unchanged():
    snap = snapshot()
    assert MarketConditionEvaluator().evaluate(REQUEST, snap).snapshot is snap
