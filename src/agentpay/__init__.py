"""
AgentPay - Payment Intent Lifecycle Engine

Turns free-text payment requests into tracked payment intents that are
scored for risk and market timing before settlement.

Usage:
    >>> from agentpay import AgentPay
    >>>
    >>> async with AgentPay() as client:
    ...     intent = await client.intent.create("pay 0.5 ETH to 0xabc when gas is low")
    ...     intent = await client.intent.execute(intent.id)
    ...     print(intent.status, intent.settlement_reference)
"""

from agentpay.client import AgentPay
from agentpay.core.config import Config
from agentpay.core.exceptions import (
    AgentPayError,
    CollaboratorError,
    ConfigurationError,
    InvalidStateTransitionError,
    NotFoundError,
    SettlementError,
    SettlementTimeoutError,
    StorageError,
    ValidationError,
)
from agentpay.core.types import (
    Congestion,
    ExecutionTiming,
    FailureCode,
    MarketAnalysis,
    MarketSnapshot,
    PaymentAnalytics,
    PaymentIntent,
    PaymentIntentStatus,
    PaymentRequest,
    Provenance,
    RawPaymentRequest,
    Recommendation,
    RiskAssessment,
    RiskMitigation,
    Token,
    TransactionData,
    Urgency,
)
from agentpay.intents.engine import PaymentIntentEngine

__version__ = "0.1.0"

__all__ = [
    # Client
    "AgentPay",
    "Config",
    "PaymentIntentEngine",
    # Exceptions
    "AgentPayError",
    "CollaboratorError",
    "ConfigurationError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "SettlementError",
    "SettlementTimeoutError",
    "StorageError",
    "ValidationError",
    # Types
    "Congestion",
    "ExecutionTiming",
    "FailureCode",
    "MarketAnalysis",
    "MarketSnapshot",
    "PaymentAnalytics",
    "PaymentIntent",
    "PaymentIntentStatus",
    "PaymentRequest",
    "Provenance",
    "RawPaymentRequest",
    "Recommendation",
    "RiskAssessment",
    "RiskMitigation",
    "Token",
    "TransactionData",
    "Urgency",
]
