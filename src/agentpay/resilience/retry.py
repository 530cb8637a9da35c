"""
Retry Strategies using Tenacity.

Standard retry policy for idempotent collaborator reads (analysis prompts,
market samples, fee estimates). Settlement submissions are never retried.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from agentpay.core.logging import get_logger

logger = get_logger("resilience.retry")


def is_transient_error(exception: BaseException) -> bool:
    """Check if exception is a transient network/infrastructure error."""
    if isinstance(exception, (httpx.TimeoutException, httpx.TransportError)):
        return True
    if isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        return status == 429 or 500 <= status < 600
    return False


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        f"Retrying collaborator call... (Attempt {retry_state.attempt_number}): "
        f"{retry_state.outcome.exception() if retry_state.outcome else 'unknown error'}"
    )


async def execute_with_retry(
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    max_attempts: int = 3,
    **kwargs: Any,
) -> Any:
    """
    Execute an async function with the standard retry policy.

    Retries only transient errors, with exponential backoff (0.25s, 0.5s, ... 2s).
    The last error is re-raised once attempts are exhausted.
    """
    async for attempt in AsyncRetrying(
        retry=retry_if_exception(is_transient_error),
        wait=wait_exponential(multiplier=0.25, min=0.25, max=2),
        stop=stop_after_attempt(max_attempts),
        reraise=True,
        before_sleep=_log_retry,
    ):
        with attempt:
            return await func(*args, **kwargs)
