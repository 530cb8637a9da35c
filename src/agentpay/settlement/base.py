"""
Base settlement backend interface.

The engine submits each intent's TransactionData to exactly one backend, at
most once per execute. Backends never retry submissions themselves.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agentpay.core.types import TransactionData


class SettlementBackend(ABC):
    """
    Abstract base class for settlement backends.

    - JsonRpcSettlement: eth_sendTransaction against a node
    - SimulatedSettlement: random transaction hash after a short delay
    """

    name: str = "settlement"

    @abstractmethod
    async def submit(self, tx: TransactionData) -> str:
        """
        Submit a transaction and wait for it to settle.

        Args:
            tx: Backend-ready transaction parameters

        Returns:
            Settlement reference (transaction hash)

        Raises:
            SettlementError: If the backend rejects or reverts the transaction
        """
        ...

    async def close(self) -> None:
        return None
