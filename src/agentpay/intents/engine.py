"""
PaymentIntentEngine - owns payment intents and drives their lifecycle.

create:  Parse -> AssessRisk -> EvaluateMarket -> BuildTransaction -> store
         (status pending_approval). Each stage is awaited before the next and
         absorbs its own collaborator failures.
execute: pending_approval -> executing -> completed | failed, with one
         settlement submission per execute.
"""

from __future__ import annotations

import asyncio
import dataclasses
import uuid
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable

from agentpay.core.exceptions import (
    InvalidStateTransitionError,
    NotFoundError,
    SettlementError,
    SettlementTimeoutError,
    ValidationError,
)
from agentpay.core.logging import get_logger
from agentpay.core.types import (
    FailureCode,
    PaymentAnalytics,
    PaymentIntent,
    PaymentIntentStatus,
    RawPaymentRequest,
    Token,
)
from agentpay.market.feed import fallback_snapshot, utc_now

if TYPE_CHECKING:
    from agentpay.core.types import MarketSnapshot
    from agentpay.intents.lock import IntentLockService
    from agentpay.intents.parser import RequestParser
    from agentpay.intents.store import IntentStore
    from agentpay.market.evaluator import MarketConditionEvaluator
    from agentpay.market.feed import MarketDataFeed
    from agentpay.risk.assessor import RiskAssessor
    from agentpay.settlement.base import SettlementBackend
    from agentpay.transactions.builder import TransactionBuilder

logger = get_logger("intents.engine")

_EXPLICIT_FIELDS = ("amount", "token", "recipient", "urgency", "conditions")
_RAW_FIELDS = frozenset(f.name for f in dataclasses.fields(RawPaymentRequest))


def _new_intent_id() -> str:
    return str(uuid.uuid4())


class PaymentIntentEngine:
    """
    Payment intent lifecycle engine.

    Every method returns value copies; mutating a returned intent never
    affects the stored one.
    """

    def __init__(
        self,
        parser: RequestParser,
        assessor: RiskAssessor,
        evaluator: MarketConditionEvaluator,
        builder: TransactionBuilder,
        settlement: SettlementBackend,
        store: IntentStore,
        locks: IntentLockService,
        feed: MarketDataFeed | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] | None = None,
        settlement_timeout: float = 120.0,
    ) -> None:
        """
        Initialize engine.

        Args:
            parser: Request parsing stage
            assessor: Risk scoring stage
            evaluator: Market condition stage
            builder: Transaction building stage
            settlement: Settlement backend used by execute
            store: Intent persistence
            locks: Per-intent execute locks
            feed: Market data feed (None always uses the fallback snapshot)
            clock: Source of timezone-aware timestamps
            id_factory: Source of new intent ids
            settlement_timeout: Default execute deadline in seconds
        """
        self._parser = parser
        self._assessor = assessor
        self._evaluator = evaluator
        self._builder = builder
        self._settlement = settlement
        self._store = store
        self._locks = locks
        self._feed = feed
        self._clock = clock
        self._id_factory = id_factory or _new_intent_id
        self._settlement_timeout = settlement_timeout

    @property
    def feed(self) -> MarketDataFeed | None:
        return self._feed

    @property
    def assessor(self) -> RiskAssessor:
        return self._assessor

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start market data polling."""
        if self._feed is not None:
            await self._feed.start()

    async def stop(self) -> None:
        """Stop market data polling."""
        if self._feed is not None:
            await self._feed.stop()

    async def __aenter__(self) -> PaymentIntentEngine:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def _current_snapshot(self) -> MarketSnapshot:
        if self._feed is None:
            return fallback_snapshot(self._clock)
        return self._feed.current()

    async def create(
        self, raw: RawPaymentRequest | Mapping[str, Any] | str
    ) -> PaymentIntent:
        """
        Run the analysis pipeline and store a pending intent.

        Args:
            raw: Free text, a RawPaymentRequest, or a mapping with "description"
                and optional explicit fields

        Returns:
            The new intent (status pending_approval)

        Raises:
            ValidationError: If the caller's explicit input is malformed
            StorageError: If the intent store is full or unavailable
        """
        if isinstance(raw, str):
            raw = RawPaymentRequest(description=raw)
        elif isinstance(raw, Mapping):
            unknown = sorted(str(key) for key in raw if key not in _RAW_FIELDS)
            if unknown:
                raise ValidationError(
                    f"Unknown request fields: {', '.join(unknown)}",
                    details={"fields": unknown},
                )
            raw = RawPaymentRequest(**raw)

        explicit = {name: getattr(raw, name) for name in _EXPLICIT_FIELDS}

        request = await self._parser.parse(raw.description or "", explicit)
        risk = await self._assessor.assess(request)
        analysis = self._evaluator.evaluate(request, self._current_snapshot())
        transaction = await self._builder.build(request, risk, analysis.snapshot)

        intent = PaymentIntent(
            id=self._id_factory(),
            request=request,
            risk_assessment=risk,
            market_analysis=analysis,
            transaction=transaction,
            status=PaymentIntentStatus.PENDING_APPROVAL,
            created_at=self._clock(),
        )
        await self._store.add(intent)

        logger.info(
            f"Created intent {intent.id}: {request.amount} {request.token.value} -> "
            f"{request.recipient} (risk {risk.score}, {request.source.value})"
        )
        return PaymentIntent.from_dict(intent.to_dict())

    async def _begin_execution(self, intent_id: str) -> PaymentIntent:
        """Check-and-transition into executing under the intent lock."""
        intent = await self._store.get(intent_id)
        if intent is None:
            raise NotFoundError(intent_id)

        token = await self._locks.acquire(intent_id)
        if token is None:
            raise InvalidStateTransitionError(
                intent_id, intent.status.value, PaymentIntentStatus.EXECUTING.value
            )

        try:
            intent = await self._store.get(intent_id)
            if intent is None:
                raise NotFoundError(intent_id)
            intent.transition_to(PaymentIntentStatus.EXECUTING, self._clock())
            await self._store.save(intent)
        finally:
            await self._locks.release(intent_id, token)

        logger.info(f"Executing intent {intent_id}")
        return intent

    async def _fail(self, intent: PaymentIntent, error: str, code: FailureCode) -> None:
        intent.transition_to(
            PaymentIntentStatus.FAILED, self._clock(), error=error, error_code=code
        )
        await self._store.save(intent)
        logger.warning(f"Intent {intent.id} failed ({code.value}): {error}")

    async def execute(self, intent_id: str, timeout: float | None = None) -> PaymentIntent:
        """
        Settle a pending intent.

        Args:
            intent_id: Intent to execute
            timeout: Settlement deadline in seconds (default: configured)

        Returns:
            The intent in its terminal state (completed or failed)

        Raises:
            NotFoundError: If the id is unknown
            InvalidStateTransitionError: If the intent is not pending approval
                or another execute holds it
        """
        intent = await self._begin_execution(intent_id)
        deadline = self._settlement_timeout if timeout is None else timeout

        try:
            reference = await asyncio.wait_for(
                self._settlement.submit(intent.transaction), deadline
            )
        except asyncio.TimeoutError:
            error = SettlementTimeoutError(
                f"Settlement did not finish within {deadline}s", timeout_seconds=deadline
            )
            await self._fail(intent, error.message, FailureCode.TIMEOUT)
        except asyncio.CancelledError:
            await self._fail(intent, "Execution cancelled", FailureCode.CANCELLED)
            raise
        except SettlementError as e:
            await self._fail(intent, e.message, FailureCode.SETTLEMENT_ERROR)
        except Exception as e:
            await self._fail(intent, f"{type(e).__name__}: {e}", FailureCode.SETTLEMENT_ERROR)
        else:
            if not reference:
                await self._fail(
                    intent, "Settlement returned no reference", FailureCode.SETTLEMENT_ERROR
                )
            else:
                intent.transition_to(
                    PaymentIntentStatus.COMPLETED,
                    self._clock(),
                    settlement_reference=reference,
                )
                await self._store.save(intent)
                logger.info(f"Intent {intent_id} completed: {reference}")

        return PaymentIntent.from_dict(intent.to_dict())

    async def get(self, intent_id: str) -> PaymentIntent | None:
        """Get intent by ID."""
        return await self._store.get(intent_id)

    async def list_recent(self, limit: int = 10) -> list[PaymentIntent]:
        """Most recently created intents first."""
        return await self._store.list_recent(limit)

    async def analytics(self) -> PaymentAnalytics:
        """Aggregate counts, success rate and risk over all stored intents."""
        intents = await self._store.all()
        total = len(intents)

        by_status = {status: 0 for status in PaymentIntentStatus}
        totals: dict[Token, Decimal] = {}
        risk_sum = 0
        for intent in intents:
            by_status[intent.status] += 1
            risk_sum += intent.risk_assessment.score
            if intent.status == PaymentIntentStatus.COMPLETED:
                totals[intent.token] = totals.get(intent.token, Decimal("0")) + intent.amount

        completed = by_status[PaymentIntentStatus.COMPLETED]
        return PaymentAnalytics(
            total=total,
            completed=completed,
            pending=by_status[PaymentIntentStatus.PENDING_APPROVAL],
            executing=by_status[PaymentIntentStatus.EXECUTING],
            failed=by_status[PaymentIntentStatus.FAILED],
            success_rate=completed / total if total else 0.0,
            average_risk_score=risk_sum / total if total else 0.0,
            total_amount_by_token=totals,
            latest_market_snapshot=self._feed.snapshot if self._feed is not None else None,
        )
