"""Market data sampling and execution-condition evaluation."""

from agentpay.market.evaluator import MarketConditionEvaluator, fee_condition
from agentpay.market.feed import (
    JsonRpcMarketDataSource,
    MarketDataFeed,
    MarketDataSource,
    SimulatedMarketDataSource,
    fallback_snapshot,
)

__all__ = [
    "MarketConditionEvaluator",
    "fee_condition",
    "JsonRpcMarketDataSource",
    "MarketDataFeed",
    "MarketDataSource",
    "SimulatedMarketDataSource",
    "fallback_snapshot",
]
