"""
Market Condition Evaluator.

Pure function of (request, snapshot): no I/O, no clock, no randomness.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from agentpay.core.types import (
    Congestion,
    CostOptimization,
    ExecutionTiming,
    MarketAnalysis,
    MarketSnapshot,
    PaymentRequest,
)

NETWORK_CLEAR_CONDITION = "execute_when_network_clear"


def fee_condition(threshold: Decimal) -> str:
    """Condition tag asking to wait for the fee rate to drop below threshold."""
    return f"wait_fee_below_{threshold.normalize():f}"


class MarketConditionEvaluator:
    """Derives execution conditions and timing from a market snapshot."""

    def __init__(
        self,
        fee_rate_threshold: Decimal = Decimal("25"),
        deferral: timedelta = timedelta(hours=2),
    ) -> None:
        """
        Args:
            fee_rate_threshold: Fee rate (gwei) above which execution should wait
            deferral: How long to defer on a congested network
        """
        self.fee_rate_threshold = fee_rate_threshold
        self.deferral = deferral

    def evaluate(self, request: PaymentRequest, snapshot: MarketSnapshot) -> MarketAnalysis:
        conditions: list[str] = []
        timing = ExecutionTiming.immediate()
        cost = CostOptimization.EXECUTE_NOW

        if snapshot.fee_rate > self.fee_rate_threshold:
            conditions.append(fee_condition(self.fee_rate_threshold))
            cost = CostOptimization.DELAY_EXECUTION

        if snapshot.congestion == Congestion.HIGH:
            conditions.append(NETWORK_CLEAR_CONDITION)
            timing = ExecutionTiming.deferred(self.deferral)

        return MarketAnalysis(
            snapshot=snapshot,
            conditions=tuple(conditions),
            timing=timing,
            cost_optimization=cost,
        )
