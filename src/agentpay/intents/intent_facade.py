"""
Payment Intent Facade for AgentPay.

Provides the `client.intent.create/execute/get/list_recent/analytics` API used
by UIs and scripts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from agentpay.core.types import AmountType, PaymentAnalytics, PaymentIntent, RawPaymentRequest

if TYPE_CHECKING:
    from agentpay.intents.engine import PaymentIntentEngine


class PaymentIntentFacade:
    """
    Facade for managing payment intents via the `client.intent` property.

    - client.intent.create("pay 0.5 ETH to 0xABC")
    - client.intent.execute(intent_id)
    - client.intent.analytics()
    """

    def __init__(self, engine: PaymentIntentEngine) -> None:
        """
        Initialize the facade.

        Args:
            engine: The payment intent engine
        """
        self._engine = engine

    async def create(
        self,
        description: str = "",
        amount: AmountType | None = None,
        token: str | None = None,
        recipient: str | None = None,
        urgency: str | None = None,
        conditions: list[str] | None = None,
    ) -> PaymentIntent:
        """
        Create a new payment intent.

        This will:
        1. Parse the description (explicit fields win)
        2. Score the payment's risk
        3. Evaluate current market conditions
        4. Build the transaction

        Args:
            description: Free-text payment request
            amount: Explicit amount
            token: Explicit token symbol (ETH, CRO, USDC, USDT)
            recipient: Explicit recipient address
            urgency: low, medium or high
            conditions: Explicit condition tags

        Returns:
            Created PaymentIntent (status: pending_approval)
        """
        raw = RawPaymentRequest(
            description=description,
            amount=amount,
            token=token,
            recipient=recipient,
            urgency=urgency,
            conditions=conditions,
        )
        return await self._engine.create(raw)

    async def execute(self, intent_id: str, timeout: float | None = None) -> PaymentIntent:
        """
        Settle a pending payment intent.

        Args:
            intent_id: ID of the intent to execute
            timeout: Settlement deadline in seconds

        Returns:
            The intent in its terminal state (completed or failed)
        """
        return await self._engine.execute(intent_id, timeout=timeout)

    async def get(self, intent_id: str) -> PaymentIntent | None:
        """Get a payment intent by ID."""
        return await self._engine.get(intent_id)

    async def list_recent(self, limit: int = 10) -> list[PaymentIntent]:
        return await self._engine.list_recent(limit)

    async def analytics(self) -> PaymentAnalytics:
        return await self._engine.analytics()

    def cached_risk_score(self, recipient: str) -> int | None:
        """Most recent AI risk score for a recipient, if any."""
        return self._engine.assessor.cached_score(recipient)
