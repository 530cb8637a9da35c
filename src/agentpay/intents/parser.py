"""
RequestParser - Free text + form fields -> PaymentRequest.

Semantic extraction is delegated to the analysis collaborator. When it is
unavailable, slow, or answers garbage, every field the caller did not supply
falls back to a fixed default and the result is tagged `source=fallback`.
The same tag marks a reply whose values had to be discarded, even when some
inferred fields were kept.

Defaults:
    amount      0.1
    token       primary native unit (Config.default_token, ETH)
    recipient   0x70997970C51812dc3A010C7d01b50e0d17dc79C8
    conditions  ("immediate",)
    urgency     medium
    description the original free text
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from agentpay.core.config import FALLBACK_RECIPIENT
from agentpay.core.exceptions import ValidationError
from agentpay.core.logging import get_logger
from agentpay.core.types import PaymentRequest, Provenance, Token, Urgency
from agentpay.resilience.guarded import guarded_call
from agentpay.utils.units import decimal_places, to_decimal

if TYPE_CHECKING:
    from agentpay.analysis.base import AnalysisClient
    from agentpay.resilience.circuit import CircuitBreaker

logger = get_logger("intents.parser")

DEFAULT_AMOUNT = Decimal("0.1")
DEFAULT_CONDITIONS: tuple[str, ...] = ("immediate",)
DEFAULT_URGENCY = Urgency.MEDIUM


def _coerce_conditions(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"conditions must be a list, got {type(value).__name__}")
    conditions = tuple(str(c).strip() for c in value if str(c).strip())
    if not conditions:
        raise ValueError("conditions must not be empty")
    return conditions


def _coerce_recipient(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("recipient must be a non-empty string")
    return value.strip()


def _coerce_amount(value: Any) -> Decimal:
    amount = to_decimal(value)
    if amount <= 0:
        raise ValueError(f"amount must be positive, got {amount}")
    return amount


def _coerce_token(value: Any) -> Token:
    return value if isinstance(value, Token) else Token.from_string(str(value))


def _coerce_urgency(value: Any) -> Urgency:
    return value if isinstance(value, Urgency) else Urgency.from_string(str(value))


_COERCERS = {
    "amount": _coerce_amount,
    "token": _coerce_token,
    "recipient": _coerce_recipient,
    "conditions": _coerce_conditions,
    "urgency": _coerce_urgency,
}


class RequestParser:
    """
    Turns free text plus explicit form fields into a PaymentRequest.

    Explicit fields always take precedence over anything inferred.
    """

    def __init__(
        self,
        analysis: AnalysisClient | None,
        circuit: CircuitBreaker | None = None,
        default_token: Token = Token.ETH,
        fallback_recipient: str = FALLBACK_RECIPIENT,
        timeout: float = 15.0,
    ) -> None:
        """
        Initialize parser.

        Args:
            analysis: Analysis collaborator (None always falls back)
            circuit: Circuit breaker shared by analysis calls
            default_token: Token used when none is given or inferred
            fallback_recipient: Placeholder recipient
            timeout: Seconds to wait for the collaborator
        """
        self._analysis = analysis
        self._circuit = circuit
        self._default_token = default_token
        self._fallback_recipient = fallback_recipient
        self._timeout = timeout

    async def parse(
        self,
        free_text: str,
        explicit: Mapping[str, Any] | None = None,
    ) -> PaymentRequest:
        """
        Build a PaymentRequest.

        Args:
            free_text: Natural-language request
            explicit: Caller-supplied fields (amount, token, recipient, urgency,
                conditions); None values are ignored

        Raises:
            ValidationError: If the caller's explicit input is malformed
        """
        fields = self._validate_explicit(free_text, explicit or {})
        inferred, source = await self._infer(free_text)

        amount = fields.get("amount")
        token = fields.get("token")
        if token is None:
            token = inferred.get("token") or self._default_token
            if (
                amount is not None
                and decimal_places(amount) > token.decimals
                and decimal_places(amount) <= self._default_token.decimals
            ):
                logger.warning(
                    f"Inferred token {token.value} cannot hold amount {amount}; "
                    f"using {self._default_token.value}"
                )
                token = self._default_token
                source = Provenance.FALLBACK

        if amount is not None and decimal_places(amount) > token.decimals:
            raise ValidationError(
                f"Amount {amount} has more than {token.decimals} decimal places for {token.value}"
            )
        if amount is None:
            amount = inferred.get("amount")
            if amount is not None and decimal_places(amount) > token.decimals:
                logger.warning(f"Inferred amount {amount} too precise for {token.value}; using default")
                amount = None
                source = Provenance.FALLBACK
        if amount is None:
            amount = DEFAULT_AMOUNT

        request = PaymentRequest(
            amount=amount,
            token=token,
            recipient=fields.get("recipient") or inferred.get("recipient") or self._fallback_recipient,
            conditions=fields.get("conditions") or inferred.get("conditions") or DEFAULT_CONDITIONS,
            urgency=fields.get("urgency") or inferred.get("urgency") or DEFAULT_URGENCY,
            description=inferred.get("description") or free_text,
            source=source,
        )
        logger.debug(f"Parsed request ({source.value}): {request.amount} {request.token.value} -> {request.recipient}")
        return request

    def _validate_explicit(self, free_text: str, explicit: Mapping[str, Any]) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        for name, coerce in _COERCERS.items():
            value = explicit.get(name)
            if value is None:
                continue
            try:
                fields[name] = coerce(value)
            except ValueError as e:
                raise ValidationError(f"Invalid {name}: {e}", details={name: str(value)}) from None

        if not free_text.strip() and ("amount" not in fields or "recipient" not in fields):
            raise ValidationError(
                "A description is required unless both amount and recipient are given"
            )
        return fields

    async def _infer(self, free_text: str) -> tuple[dict[str, Any], Provenance]:
        """Ask the collaborator for fields. Never raises."""
        if self._analysis is None or not free_text.strip():
            return {}, Provenance.FALLBACK

        try:
            response = await guarded_call(
                self._analysis.parse_payment_request,
                free_text,
                timeout=self._timeout,
                circuit=self._circuit,
            )
        except Exception as e:
            logger.warning(f"AI parsing failed, using defaults: {e!r}")
            return {}, Provenance.FALLBACK

        if not isinstance(response, Mapping):
            logger.warning(f"AI parsing returned {type(response).__name__}, using defaults")
            return {}, Provenance.FALLBACK

        inferred: dict[str, Any] = {}
        rejected: list[str] = []
        for name, coerce in _COERCERS.items():
            value = response.get(name)
            if value is None:
                continue
            try:
                inferred[name] = coerce(value)
            except ValueError as e:
                logger.debug(f"Ignoring inferred {name}={value!r}: {e}")
                rejected.append(name)

        if not inferred:
            logger.warning("AI parsing returned no usable fields, using defaults")
            return {}, Provenance.FALLBACK

        description = response.get("description")
        if isinstance(description, str) and description.strip():
            inferred["description"] = description.strip()

        if rejected:
            logger.warning(f"AI parsing returned invalid {', '.join(rejected)}; using defaults for them")
            return inferred, Provenance.FALLBACK
        return inferred, Provenance.AI
