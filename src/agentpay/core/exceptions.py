"""
Exception hierarchy for AgentPay.

All engine exceptions inherit from AgentPayError for easy catching.
"""

from __future__ import annotations

from typing import Any


class AgentPayError(Exception):
    """
    Base exception for all AgentPay errors.

    Catch this to handle any engine-related exception.

    Example:
        >>> try:
        ...     await engine.execute(intent_id)
        ... except AgentPayError as e:
        ...     print(f"Payment engine error: {e}")
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(AgentPayError):
    """
    Configuration is missing or invalid.

    Raised when:
    - A storage backend name is unknown
    - A collaborator adapter is selected without its endpoint
    """

    pass


class ValidationError(AgentPayError):
    """
    Input validation error.

    Raised when:
    - Required parameters are missing
    - Parameter values are invalid (non-positive amount, blank recipient)
    - An amount has more decimals than its token supports
    """

    pass


class NotFoundError(AgentPayError):
    """No payment intent exists with the requested id."""

    def __init__(self, intent_id: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(f"Payment intent not found: {intent_id}", details)
        self.intent_id = intent_id


class InvalidStateTransitionError(AgentPayError):
    """
    A lifecycle transition is not permitted from the intent's current state.

    Raised when:
    - Executing an intent that is not pending approval
    - Executing an intent while another execution holds it
    - Any transition out of a terminal state

    The stored intent is never modified when this is raised.
    """

    def __init__(
        self,
        intent_id: str,
        current: str,
        target: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Cannot move intent {intent_id} from {current} to {target}",
            details,
        )
        self.intent_id = intent_id
        self.current = current
        self.target = target


class CollaboratorError(AgentPayError):
    """
    An external collaborator call failed.

    Raised by analysis, market and fee adapters. Pipeline stages always absorb
    it and substitute their documented fallback.
    """

    def __init__(
        self,
        message: str,
        collaborator: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.collaborator = collaborator

    def __str__(self) -> str:
        return f"[{self.collaborator}] {self.message}"


class SettlementError(AgentPayError):
    """
    The settlement backend rejected or failed a submission.

    Recorded on the intent as a failed execution; never raised past `execute`.
    """

    def __init__(
        self,
        message: str,
        reference: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.reference = reference


class SettlementTimeoutError(SettlementError):
    """Settlement did not respond before the execution deadline."""

    def __init__(
        self,
        message: str,
        timeout_seconds: float,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.timeout_seconds = timeout_seconds


class StorageError(AgentPayError):
    """
    The intent store is full or unavailable.

    Fatal to the current call only.
    """

    pass
