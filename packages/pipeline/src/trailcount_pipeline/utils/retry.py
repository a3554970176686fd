"""
utils/retry.py — Exponential-backoff retry decorator for startup calls.

Uses tenacity under the hood. Logs each attempt with structlog so a slow
database at process start is visible without crashing the poller.

Only startup work is retried (building the sink pool). Deletes and inserts
inside a run are never retried: a sink failure aborts the run.

Usage:
    from trailcount_pipeline.utils.retry import with_retry

    @with_retry(max_attempts=3, base_delay=1.0, retry_on=PoolError)
    def connect() -> ConnectionPool: ...
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: type[Exception] | tuple[type[Exception], ...] = Exception,
) -> Callable[[F], F]:
    """
    Decorator that retries a function with exponential backoff.

    Delays: base_delay * 2^(attempt-1), capped at max_delay.
    Default: 1 s, 2 s, 4 s.

    Args:
        max_attempts: Total attempts before raising.
        base_delay:   Initial delay in seconds.
        max_delay:    Maximum delay cap in seconds.
        retry_on:     Exception type(s) that trigger a retry.

    Returns:
        Decorated function. The last exception is re-raised once attempts
        are exhausted.
    """

    def decorator(fn: F) -> F:
        attempt_log = log.bind(function=fn.__qualname__)

        def before_sleep(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            attempt_log.warning(
                "retry_attempt",
                attempt=state.attempt_number,
                max_attempts=max_attempts,
                delay_s=state.next_action.sleep if state.next_action else None,
                error=str(exc),
            )

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            retrying = Retrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(multiplier=base_delay, max=max_delay),
                retry=retry_if_exception_type(retry_on),
                before_sleep=before_sleep,
                reraise=True,
            )
            try:
                return retrying(fn, *args, **kwargs)
            except retry_on as exc:
                attempt_log.error("retry_exhausted", max_attempts=max_attempts, error=str(exc))
                raise

        return wrapper  # type: ignore[return-value]

    return decorator
