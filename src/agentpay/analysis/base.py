"""
Analysis collaborator interface.

The engine only ever sees loosely-typed mappings from the analysis model;
RequestParser and RiskAssessor validate every field they read.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from agentpay.core.types import PaymentRequest


class AnalysisClient(ABC):
    """External model that extracts payment fields and scores risk."""

    name: str = "analysis"

    @abstractmethod
    async def parse_payment_request(self, text: str) -> dict[str, Any]:
        """
        Extract structured fields from free text.

        Expected keys (all optional): amount, token, recipient, conditions,
        urgency, description.

        Raises:
            CollaboratorError: If the model is unreachable or answers garbage
        """
        ...

    @abstractmethod
    async def assess_payment_risk(self, request: PaymentRequest) -> dict[str, Any]:
        """
        Score a structured request.

        Expected keys (all optional): riskScore, factors, recommendation, reasoning.

        Raises:
            CollaboratorError: If the model is unreachable or answers garbage
        """
        ...

    async def close(self) -> None:
        """Release network resources."""
        return None
