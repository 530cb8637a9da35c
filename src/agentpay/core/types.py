"""
Type definitions for AgentPay.

This module contains all the enums, data classes, and type definitions
used throughout the payment intent engine.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, TypeAlias

from agentpay.core.exceptions import InvalidStateTransitionError

# Type alias for flexible amount input
AmountType: TypeAlias = Decimal | int | float | str


class Token(str, Enum):
    """Supported payment tokens."""

    ETH = "ETH"
    CRO = "CRO"
    USDC = "USDC"
    USDT = "USDT"

    @classmethod
    def from_string(cls, value: str) -> "Token":
        value_upper = value.strip().upper()
        for member in cls:
            if member.value == value_upper:
                return member
        raise ValueError(f"Unknown token: {value}. Supported: {[t.value for t in cls]}")

    @property
    def decimals(self) -> int:
        return TOKEN_DECIMALS[self]

    def is_native(self) -> bool:
        return self in (Token.ETH, Token.CRO)


TOKEN_DECIMALS: dict[Token, int] = {
    Token.ETH: 18,
    Token.CRO: 18,
    Token.USDC: 6,
    Token.USDT: 6,
}


class Urgency(str, Enum):
    """How soon the requester wants the payment to settle."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_string(cls, value: str) -> "Urgency":
        value_lower = value.strip().lower()
        for member in cls:
            if member.value == value_lower:
                return member
        raise ValueError(f"Unknown urgency: {value}. Supported: {[u.value for u in cls]}")


class Provenance(str, Enum):
    """Which path produced a value."""

    AI = "ai"  # Analysis collaborator answered
    FEED = "feed"  # Market data feed sample
    FEE_MODEL = "fee_model"  # Fee model collaborator answered
    FALLBACK = "fallback"  # Documented local default


class Recommendation(str, Enum):
    """Risk recommendation."""

    APPROVE = "approve"
    HOLD = "hold"
    REJECT = "reject"


class Congestion(str, Enum):
    """Network congestion level."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class TimingKind(str, Enum):
    """Recommended execution timing."""

    IMMEDIATE = "immediate"
    DEFERRED = "deferred"


class CostOptimization(str, Enum):
    """Fee-driven execution advice."""

    EXECUTE_NOW = "execute_now"
    DELAY_EXECUTION = "delay_execution"


class RiskMitigation(str, Enum):
    """Extra handling requested for risky transactions."""

    STANDARD = "standard"
    ADDITIONAL_VERIFICATION = "additional_verification"


class FailureCode(str, Enum):
    """Why an execution ended in FAILED."""

    SETTLEMENT_ERROR = "settlement_error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class PaymentIntentStatus(str, Enum):
    """Status of a PaymentIntent."""

    PENDING_APPROVAL = "pending_approval"  # Analyzed, waiting for execute
    EXECUTING = "executing"  # Settlement in flight
    COMPLETED = "completed"  # Settled successfully
    FAILED = "failed"  # Settlement failed or timed out

    def is_terminal(self) -> bool:
        return self in (PaymentIntentStatus.COMPLETED, PaymentIntentStatus.FAILED)

    def can_transition_to(self, target: "PaymentIntentStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[PaymentIntentStatus, frozenset[PaymentIntentStatus]] = {
    PaymentIntentStatus.PENDING_APPROVAL: frozenset({PaymentIntentStatus.EXECUTING}),
    PaymentIntentStatus.EXECUTING: frozenset(
        {PaymentIntentStatus.COMPLETED, PaymentIntentStatus.FAILED}
    ),
    PaymentIntentStatus.COMPLETED: frozenset(),
    PaymentIntentStatus.FAILED: frozenset(),
}


def _parse_dt(val: str | datetime | None) -> datetime | None:
    if val is None:
        return None
    if isinstance(val, datetime):
        return val
    return datetime.fromisoformat(val.replace("Z", "+00:00"))


def _format_dt(val: datetime | None) -> str | None:
    return val.isoformat() if val else None


@dataclass
class RawPaymentRequest:
    """Caller input: free text plus optional explicit form fields."""

    description: str = ""
    amount: AmountType | None = None
    token: Token | str | None = None
    recipient: str | None = None
    urgency: Urgency | str | None = None
    conditions: list[str] | None = None


@dataclass(frozen=True)
class PaymentRequest:
    """Structured payment request. Immutable once parsed."""

    amount: Decimal
    token: Token
    recipient: str
    conditions: tuple[str, ...] = ("immediate",)
    urgency: Urgency = Urgency.MEDIUM
    description: str = ""
    source: Provenance = Provenance.AI

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("Amount must be positive")
        if not self.recipient or not self.recipient.strip():
            raise ValueError("Recipient is required")

    def to_dict(self) -> dict[str, Any]:
        return {
            "amount": str(self.amount),
            "token": self.token.value,
            "recipient": self.recipient,
            "conditions": list(self.conditions),
            "urgency": self.urgency.value,
            "description": self.description,
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaymentRequest":
        return cls(
            amount=Decimal(data["amount"]),
            token=Token(data["token"]),
            recipient=data["recipient"],
            conditions=tuple(data.get("conditions", ())),
            urgency=Urgency(data.get("urgency", Urgency.MEDIUM.value)),
            description=data.get("description", ""),
            source=Provenance(data.get("source", Provenance.AI.value)),
        )


@dataclass(frozen=True)
class RiskAssessment:
    """Risk score attached to exactly one payment intent."""

    score: int
    factors: tuple[str, ...] = ()
    recommendation: Recommendation = Recommendation.APPROVE
    reasoning: str = ""
    source: Provenance = Provenance.AI

    def __post_init__(self) -> None:
        if not 0 <= self.score <= 100:
            raise ValueError(f"Risk score must be within [0, 100], got {self.score}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "factors": list(self.factors),
            "recommendation": self.recommendation.value,
            "reasoning": self.reasoning,
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RiskAssessment":
        return cls(
            score=int(data["score"]),
            factors=tuple(data.get("factors", ())),
            recommendation=Recommendation(data.get("recommendation", "approve")),
            reasoning=data.get("reasoning", ""),
            source=Provenance(data.get("source", Provenance.AI.value)),
        )


@dataclass(frozen=True)
class MarketSnapshot:
    """Point-in-time market conditions. Fee rate is in gwei."""

    price: Decimal
    fee_rate: Decimal
    congestion: Congestion
    timestamp: datetime
    source: Provenance = Provenance.FEED

    def to_dict(self) -> dict[str, Any]:
        return {
            "price": str(self.price),
            "fee_rate": str(self.fee_rate),
            "congestion": self.congestion.value,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MarketSnapshot":
        return cls(
            price=Decimal(data["price"]),
            fee_rate=Decimal(data["fee_rate"]),
            congestion=Congestion(data["congestion"]),
            timestamp=_parse_dt(data["timestamp"]),
            source=Provenance(data.get("source", Provenance.FEED.value)),
        )


@dataclass(frozen=True)
class ExecutionTiming:
    """Immediate, or deferred by a duration."""

    kind: TimingKind = TimingKind.IMMEDIATE
    delay: timedelta | None = None

    @classmethod
    def immediate(cls) -> "ExecutionTiming":
        return cls()

    @classmethod
    def deferred(cls, delay: timedelta) -> "ExecutionTiming":
        return cls(kind=TimingKind.DEFERRED, delay=delay)

    @property
    def is_deferred(self) -> bool:
        return self.kind == TimingKind.DEFERRED

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "delay_seconds": self.delay.total_seconds() if self.delay is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExecutionTiming":
        delay = data.get("delay_seconds")
        return cls(
            kind=TimingKind(data["kind"]),
            delay=timedelta(seconds=delay) if delay is not None else None,
        )


@dataclass(frozen=True)
class MarketAnalysis:
    """Execution conditions derived from a market snapshot."""

    snapshot: MarketSnapshot
    conditions: tuple[str, ...] = ()
    timing: ExecutionTiming = field(default_factory=ExecutionTiming.immediate)
    cost_optimization: CostOptimization = CostOptimization.EXECUTE_NOW

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshot": self.snapshot.to_dict(),
            "conditions": list(self.conditions),
            "timing": self.timing.to_dict(),
            "cost_optimization": self.cost_optimization.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MarketAnalysis":
        return cls(
            snapshot=MarketSnapshot.from_dict(data["snapshot"]),
            conditions=tuple(data.get("conditions", ())),
            timing=ExecutionTiming.from_dict(data["timing"]),
            cost_optimization=CostOptimization(
                data.get("cost_optimization", CostOptimization.EXECUTE_NOW.value)
            ),
        )


@dataclass(frozen=True)
class TransactionData:
    """Backend-ready transaction parameters. All values in integer minor units."""

    destination: str
    token: Token
    value_minor_units: int
    gas_limit: int
    fee_rate: int  # minor units per gas unit
    estimated_fee: int  # gas_limit * fee_rate
    risk_mitigation: RiskMitigation = RiskMitigation.STANDARD
    payload: bytes = b""
    fee_source: Provenance = Provenance.FALLBACK

    def to_dict(self) -> dict[str, Any]:
        return {
            "destination": self.destination,
            "token": self.token.value,
            "value_minor_units": str(self.value_minor_units),
            "gas_limit": self.gas_limit,
            "fee_rate": str(self.fee_rate),
            "estimated_fee": str(self.estimated_fee),
            "risk_mitigation": self.risk_mitigation.value,
            "payload": self.payload.hex(),
            "fee_source": self.fee_source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransactionData":
        return cls(
            destination=data["destination"],
            token=Token(data["token"]),
            value_minor_units=int(data["value_minor_units"]),
            gas_limit=int(data["gas_limit"]),
            fee_rate=int(data["fee_rate"]),
            estimated_fee=int(data["estimated_fee"]),
            risk_mitigation=RiskMitigation(data["risk_mitigation"]),
            payload=bytes.fromhex(data.get("payload", "")),
            fee_source=Provenance(data.get("fee_source", Provenance.FALLBACK.value)),
        )


@dataclass
class PaymentIntent:
    """A tracked payment and its derived analysis and execution state."""

    id: str
    request: PaymentRequest
    risk_assessment: RiskAssessment
    market_analysis: MarketAnalysis
    transaction: TransactionData
    status: PaymentIntentStatus
    created_at: datetime
    execution_started_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    settlement_reference: str | None = None
    error: str | None = None
    error_code: FailureCode | None = None
    sequence: int = 0

    @property
    def amount(self) -> Decimal:
        return self.request.amount

    @property
    def token(self) -> Token:
        return self.request.token

    @property
    def recipient(self) -> str:
        return self.request.recipient

    @property
    def execution_conditions(self) -> tuple[str, ...]:
        return self.market_analysis.conditions

    def transition_to(
        self,
        target: PaymentIntentStatus,
        at: datetime,
        settlement_reference: str | None = None,
        error: str | None = None,
        error_code: FailureCode | None = None,
    ) -> None:
        """
        Apply a lifecycle transition and stamp its timestamp.

        Raises:
            InvalidStateTransitionError: If the state machine forbids the move.
                The intent is left untouched.
        """
        if not self.status.can_transition_to(target):
            raise InvalidStateTransitionError(self.id, self.status.value, target.value)

        if target == PaymentIntentStatus.EXECUTING:
            self.execution_started_at = at
        elif target == PaymentIntentStatus.COMPLETED:
            self.completed_at = at
            self.settlement_reference = settlement_reference
        elif target == PaymentIntentStatus.FAILED:
            self.failed_at = at
            self.error = error
            self.error_code = error_code
        self.status = target

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "request": self.request.to_dict(),
            "risk_assessment": self.risk_assessment.to_dict(),
            "market_analysis": self.market_analysis.to_dict(),
            "transaction": self.transaction.to_dict(),
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "execution_started_at": _format_dt(self.execution_started_at),
            "completed_at": _format_dt(self.completed_at),
            "failed_at": _format_dt(self.failed_at),
            "settlement_reference": self.settlement_reference,
            "error": self.error,
            "error_code": self.error_code.value if self.error_code else None,
            "sequence": self.sequence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaymentIntent":
        return cls(
            id=data["id"],
            request=PaymentRequest.from_dict(data["request"]),
            risk_assessment=RiskAssessment.from_dict(data["risk_assessment"]),
            market_analysis=MarketAnalysis.from_dict(data["market_analysis"]),
            transaction=TransactionData.from_dict(data["transaction"]),
            status=PaymentIntentStatus(data["status"]),
            created_at=_parse_dt(data["created_at"]),
            execution_started_at=_parse_dt(data.get("execution_started_at")),
            completed_at=_parse_dt(data.get("completed_at")),
            failed_at=_parse_dt(data.get("failed_at")),
            settlement_reference=data.get("settlement_reference"),
            error=data.get("error"),
            error_code=FailureCode(data["error_code"]) if data.get("error_code") else None,
            sequence=int(data.get("sequence", 0)),
        )


@dataclass
class PaymentAnalytics:
    """Aggregate view over the intent store."""

    total: int
    completed: int
    pending: int
    executing: int
    failed: int
    success_rate: float
    average_risk_score: float
    total_amount_by_token: dict[Token, Decimal] = field(default_factory=dict)
    latest_market_snapshot: MarketSnapshot | None = None
