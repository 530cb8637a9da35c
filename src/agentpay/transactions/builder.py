"""
Transaction Builder.

Converts a scored, condition-annotated request into backend-ready
TransactionData. Amounts are converted with integer arithmetic only.
"""

from __future__ import annotations

from agentpay.core.exceptions import ValidationError
from agentpay.core.logging import get_logger
from agentpay.core.types import (
    MarketSnapshot,
    PaymentRequest,
    RiskAssessment,
    RiskMitigation,
    TransactionData,
)
from agentpay.resilience.guarded import guarded_call
from agentpay.transactions.fees import FeeEstimate, FeeModel, SnapshotFeeModel, fallback_fee_estimate
from agentpay.utils.units import to_minor_units

logger = get_logger("transactions.builder")

# Scores above this require additional verification before settlement
VERIFICATION_THRESHOLD = 70


def risk_mitigation_for(assessment: RiskAssessment) -> RiskMitigation:
    if assessment.score > VERIFICATION_THRESHOLD:
        return RiskMitigation.ADDITIONAL_VERIFICATION
    return RiskMitigation.STANDARD


class TransactionBuilder:
    """Builds TransactionData for the settlement backend."""

    def __init__(self, fee_model: FeeModel | None = None, timeout: float = 5.0) -> None:
        """
        Args:
            fee_model: Fee estimator (defaults to the offline snapshot model)
            timeout: Seconds to wait for the fee model
        """
        self._fee_model = fee_model or SnapshotFeeModel()
        self._timeout = timeout

    async def _estimate_fee(
        self, request: PaymentRequest, snapshot: MarketSnapshot | None
    ) -> FeeEstimate:
        try:
            return await guarded_call(
                self._fee_model.estimate, request, snapshot, timeout=self._timeout
            )
        except Exception as e:
            logger.warning(f"Fee estimation failed, using fallback fee model: {e!r}")
            return fallback_fee_estimate(request, snapshot)

    async def build(
        self,
        request: PaymentRequest,
        risk: RiskAssessment,
        snapshot: MarketSnapshot | None = None,
    ) -> TransactionData:
        """
        Build transaction parameters.

        Raises:
            ValidationError: If the amount cannot be represented in minor units
        """
        try:
            value = to_minor_units(request.amount, request.token)
        except ValueError as e:
            raise ValidationError(str(e), details={"token": request.token.value}) from None

        fee = await self._estimate_fee(request, snapshot)

        return TransactionData(
            destination=request.recipient,
            token=request.token,
            value_minor_units=value,
            gas_limit=fee.gas_limit,
            fee_rate=fee.fee_rate,
            estimated_fee=fee.total,
            risk_mitigation=risk_mitigation_for(risk),
            payload=b"",
            fee_source=fee.source,
        )
