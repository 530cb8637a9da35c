"""
Bounded, circuit-guarded collaborator calls.

Every pipeline stage reaches its collaborator through `guarded_call` so that a
slow or failing collaborator costs at most `timeout` seconds and trips the
shared circuit breaker.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

if TYPE_CHECKING:
    from agentpay.resilience.circuit import CircuitBreaker

T = TypeVar("T")


async def guarded_call(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    timeout: float,
    circuit: CircuitBreaker | None = None,
) -> T:
    """
    Await `func(*args)` under a deadline, inside `circuit` when given.

    Raises:
        CircuitOpenError: If the circuit is open (func is not called)
        asyncio.TimeoutError: If the deadline passes
        Exception: Whatever func raised
    """
    if circuit is None:
        return await asyncio.wait_for(func(*args), timeout)

    async with circuit:
        return await asyncio.wait_for(func(*args), timeout)
