"""Retry-with-backoff helper shared by every network boundary.

Blob fetches, embedding calls and completion calls all go through
:func:`with_retry` so that attempt caps, backoff and the retryable-error
predicate live in one place.  Backoff is exponential (0.75 s, 1.5 s, 3 s
by default) with a small jitter, and attempts are capped.

Non-transient failures (format errors, configuration errors, 4xx provider
responses) are raised immediately on the first attempt.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ragline.utils.errors import is_retryable

logger = structlog.get_logger(logger_name=__name__)

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Attempt cap and backoff parameters for one network boundary."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1, description="Total attempts including the first.")
    base_delay: float = Field(default=0.75, ge=0.0, description="Delay before the second attempt (seconds).")
    max_delay: float = Field(default=3.0, ge=0.0, description="Upper bound on any single delay (seconds).")
    jitter: float = Field(default=0.1, ge=0.0, description="Random jitter added to each delay (seconds).")


DEFAULT_RETRY_POLICY = RetryPolicy()


async def with_retry(
    func: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    retry_on: Callable[[BaseException], bool] = is_retryable,
    operation: str = "call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``func()`` retrying transient failures with exponential backoff.

    Parameters
    ----------
    func:
        Zero-argument coroutine factory; called once per attempt.
    policy:
        Attempt cap and delay parameters.
    retry_on:
        Predicate deciding whether an exception is worth another attempt.
        Defaults to :func:`ragline.utils.errors.is_retryable`.
    operation:
        Short label used in log events.
    sleep:
        Awaitable sleep function (injectable for tests).

    Returns
    -------
    T
        Whatever ``func()`` returns on the first successful attempt.

    Raises
    ------
    Exception
        The last exception once attempts are exhausted, or the first
        non-retryable exception.
    """

    def _log_backoff(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "retry_backoff",
            operation=operation,
            attempt=state.attempt_number,
            max_attempts=policy.max_attempts,
            delay_s=round(state.next_action.sleep, 2) if state.next_action else None,
            error=str(exc) if exc else None,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential_jitter(
            initial=policy.base_delay,
            max=policy.max_delay,
            jitter=policy.jitter,
        ),
        retry=retry_if_exception(retry_on),
        before_sleep=_log_backoff,
        sleep=sleep,
        reraise=True,
    )

    async for attempt in retrying:
        with attempt:
            return await func()

    # AsyncRetrying with reraise=True either returns or raises above.
    raise RuntimeError(f"retry loop for {operation} exited without a result")
