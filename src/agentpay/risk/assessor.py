"""
Risk Assessor.

Scores a PaymentRequest through the analysis collaborator. The score is
always clamped into [0, 100] whatever the model answers, and a fixed low-risk
default is used when the collaborator fails or its reply has no usable score.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from agentpay.core.logging import get_logger
from agentpay.core.types import PaymentRequest, Provenance, Recommendation, RiskAssessment
from agentpay.resilience.guarded import guarded_call
from agentpay.risk.cache import RiskScoreCache

if TYPE_CHECKING:
    from agentpay.analysis.base import AnalysisClient
    from agentpay.resilience.circuit import CircuitBreaker

logger = get_logger("risk.assessor")

DEFAULT_SCORE = 20
DEFAULT_FACTORS: tuple[str, ...] = ("standard_transaction",)
DEFAULT_REASONING = "Normal payment pattern detected"

FALLBACK_ASSESSMENT = RiskAssessment(
    score=DEFAULT_SCORE,
    factors=("ai_analysis_failed",),
    recommendation=Recommendation.APPROVE,
    reasoning="Using default low risk due to AI failure",
    source=Provenance.FALLBACK,
)


def clamp_score(value: Any) -> int:
    """
    Coerce a model-provided score into an int within [0, 100].

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a score: {value!r}")
    score = float(value)
    if math.isnan(score):
        raise ValueError("Score is NaN")
    if math.isinf(score):
        return 100 if score > 0 else 0
    return max(0, min(100, round(score)))


def _coerce_factors(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple, set)):
        return DEFAULT_FACTORS
    factors = tuple(dict.fromkeys(str(f).strip() for f in value if str(f).strip()))
    return factors or DEFAULT_FACTORS


def _coerce_recommendation(value: Any) -> Recommendation:
    try:
        return Recommendation(str(value).strip().lower())
    except ValueError:
        return Recommendation.APPROVE


class RiskAssessor:
    """
    Risk scoring stage.

    Successful assessments are remembered per recipient in a bounded cache.
    """

    def __init__(
        self,
        analysis: AnalysisClient | None,
        circuit: CircuitBreaker | None = None,
        cache: RiskScoreCache | None = None,
        timeout: float = 15.0,
    ) -> None:
        """
        Initialize assessor.

        Args:
            analysis: Analysis collaborator (None always falls back)
            circuit: Circuit breaker shared by analysis calls
            cache: Recipient score cache
            timeout: Seconds to wait for the collaborator
        """
        self._analysis = analysis
        self._circuit = circuit
        self._cache = cache or RiskScoreCache()
        self._timeout = timeout

    @property
    def cache(self) -> RiskScoreCache:
        return self._cache

    def cached_score(self, recipient: str) -> int | None:
        """Most recent score assessed for a recipient."""
        return self._cache.get(recipient)

    async def assess(self, request: PaymentRequest) -> RiskAssessment:
        """Score a request. Never raises for collaborator failures."""
        if self._analysis is None:
            return FALLBACK_ASSESSMENT

        try:
            response = await guarded_call(
                self._analysis.assess_payment_risk,
                request,
                timeout=self._timeout,
                circuit=self._circuit,
            )
            assessment = self._from_response(response)
        except Exception as e:
            logger.warning(f"Risk assessment failed, using default low risk: {e!r}")
            return FALLBACK_ASSESSMENT

        self._cache.set(request.recipient, assessment.score)
        logger.info(
            f"Risk {assessment.score} ({assessment.recommendation.value}) for {request.recipient}"
        )
        return assessment

    @staticmethod
    def _from_response(response: Any) -> RiskAssessment:
        if not isinstance(response, Mapping):
            raise ValueError(f"Expected a mapping, got {type(response).__name__}")

        raw_score = response.get("riskScore", response.get("score"))
        if raw_score is None:
            raise ValueError("Response carries no risk score")
        score = clamp_score(raw_score)

        reasoning = response.get("reasoning")
        return RiskAssessment(
            score=score,
            factors=_coerce_factors(response.get("factors", DEFAULT_FACTORS)),
            recommendation=_coerce_recommendation(response.get("recommendation", "approve")),
            reasoning=reasoning if isinstance(reasoning, str) and reasoning else DEFAULT_REASONING,
            source=Provenance.AI,
        )
