"""
Bounded retry combinator for async operations.

Wraps tenacity's ``AsyncRetrying`` behind a small policy object so callers can
express "try up to N times, back off between attempts, only retry errors that
match a predicate" without hand-written loops. The last observed error is
re-raised unchanged once attempts run out.

Example
-------
    policy = RetryPolicy(max_attempts=5, backoff_ms=200)
    rows = await retry_async(lambda: fetch_rows(), policy, retryable=is_transient)
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Literal, Optional, TypeVar

from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)
from tenacity.wait import wait_base

T = TypeVar("T")

RetryPredicate = Callable[[BaseException], bool]
FailureHook = Callable[[int, BaseException], None]
SleepFn = Callable[[float], Awaitable[None]]


def retry_any(error: BaseException) -> bool:
    """Default predicate: every exception is retryable."""
    return isinstance(error, Exception)


class RetryPolicy(BaseModel):
    """
    How many times to try and how long to wait in between.

    ``fixed`` waits ``backoff_ms`` after every failed attempt; ``exponential``
    waits ``backoff_ms * 2 ** (attempt - 1)``, capped by ``max_backoff_ms``.
    """

    max_attempts: int = Field(..., ge=0, description="Total attempts, including the first.")
    backoff_ms: int = Field(0, ge=0, description="Base delay between attempts in milliseconds.")
    strategy: Literal["fixed", "exponential"] = Field("fixed", description="Backoff growth.")
    max_backoff_ms: Optional[int] = Field(None, ge=0, description="Upper bound for one delay.")

    model_config = {"frozen": True}

    def wait(self) -> wait_base:
        """Build the tenacity wait strategy for this policy."""
        base = self.backoff_ms / 1000
        if self.strategy == "exponential":
            kwargs: Dict[str, Any] = {"multiplier": base}
            if self.max_backoff_ms is not None:
                kwargs["max"] = self.max_backoff_ms / 1000
            return wait_exponential(**kwargs)
        return wait_fixed(base)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retryable: RetryPredicate = retry_any,
    on_failure: Optional[FailureHook] = None,
    sleep: SleepFn = asyncio.sleep,
) -> T:
    """
    Await ``operation`` until it succeeds or the policy gives up.

    Parameters
    ----------
    operation : Callable[[], Awaitable[T]]
        Zero-argument coroutine factory; called once per attempt.
    policy : RetryPolicy
        Attempt limit and backoff.
    retryable : RetryPredicate
        Errors for which this returns False propagate immediately.
    on_failure : FailureHook, optional
        Called with ``(attempt_number, error)`` after each retryable failure,
        including the final one.
    sleep : SleepFn
        Awaitable sleep used between attempts.

    Returns
    -------
    T
        The first successful result.

    Raises
    ------
    ValueError
        If ``policy.max_attempts`` is less than 1.
    BaseException
        The last error raised by ``operation``, unchanged.
    """
    if policy.max_attempts < 1:
        raise ValueError("max_attempts must be at least 1 to run the operation")

    def _after(state: RetryCallState) -> None:
        if on_failure is None or state.outcome is None or not state.outcome.failed:
            return
        error = state.outcome.exception()
        if error is not None:
            on_failure(state.attempt_number, error)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=policy.wait(),
        retry=retry_if_exception(retryable),
        after=_after,
        sleep=sleep,
        reraise=True,
    )
    return await retrying(operation)


__all__ = ["RetryPolicy", "retry_async", "retry_any", "RetryPredicate", "FailureHook"]
