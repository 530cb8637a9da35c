"""Simulated settlement: a random transaction hash after a random delay."""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING, Awaitable, Callable

from agentpay.core.logging import get_logger
from agentpay.settlement.base import SettlementBackend

if TYPE_CHECKING:
    from agentpay.core.types import TransactionData

logger = get_logger("settlement.simulated")

Sleep = Callable[[float], Awaitable[None]]


class SimulatedSettlement(SettlementBackend):
    """
    Stand-in for a chain. Every submission succeeds.

    Usage:
        settlement = SimulatedSettlement(rng=random.Random(7), sleep=fake_sleep)
        tx_hash = await settlement.submit(tx)
    """

    name = "simulated_settlement"

    def __init__(
        self,
        rng: random.Random | None = None,
        sleep: Sleep = asyncio.sleep,
        min_delay: float = 2.0,
        max_delay: float = 5.0,
    ) -> None:
        if min_delay < 0 or max_delay < min_delay:
            raise ValueError("Delays must satisfy 0 <= min_delay <= max_delay")
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._min_delay = min_delay
        self._max_delay = max_delay

    async def submit(self, tx: TransactionData) -> str:
        delay = self._rng.uniform(self._min_delay, self._max_delay)
        await self._sleep(delay)
        tx_hash = f"0x{self._rng.getrandbits(256):064x}"
        logger.debug(f"Simulated settlement of {tx.value_minor_units} to {tx.destination}: {tx_hash}")
        return tx_hash
