"""
Retry utilities with tenacity.

Wraps gateway calls so that transient failures (connection resets,
timeouts, 429/5xx) are retried with exponential backoff before the
engine ever sees a ``QueryFailed``.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MIN_WAIT = 0.5  # seconds
DEFAULT_MAX_WAIT = 10  # seconds
DEFAULT_MULTIPLIER = 2


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        min_wait: float = DEFAULT_MIN_WAIT,
        max_wait: float = DEFAULT_MAX_WAIT,
        multiplier: float = DEFAULT_MULTIPLIER,
        jitter: bool = True,
        should_retry: Callable[[BaseException], bool] | None = None,
    ):
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts (1 disables retries)
            min_wait: Minimum wait time in seconds
            max_wait: Maximum wait time in seconds
            multiplier: Exponential backoff multiplier
            jitter: Add random jitter to wait times
            should_retry: Predicate deciding whether an exception is transient
        """
        self.max_attempts = max(1, max_attempts)
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.multiplier = multiplier
        self.jitter = jitter
        self.should_retry = should_retry or (lambda exc: isinstance(exc, Exception))

    @classmethod
    def from_gateway(cls, max_retries: int, backoff_factor: float, **kwargs: Any) -> "RetryConfig":
        """Build from gateway settings, where ``max_retries`` excludes the first try."""
        return cls(max_attempts=max_retries + 1, multiplier=backoff_factor, **kwargs)

    def wait_strategy(self) -> Any:
        if self.jitter:
            return wait_random_exponential(
                multiplier=self.multiplier,
                min=self.min_wait,
                max=self.max_wait,
            )
        return wait_exponential(
            multiplier=self.multiplier,
            min=self.min_wait,
            max=self.max_wait,
        )


async def retry_async(
    coro_func: Callable[..., Awaitable[T]],
    *args: Any,
    config: RetryConfig | None = None,
    **kwargs: Any,
) -> T:
    """Execute an async function with retry logic.

    The last exception is re-raised once attempts are exhausted or the
    exception is not retryable.

    Args:
        coro_func: Async function to call
        *args: Positional arguments
        config: Retry configuration
        **kwargs: Keyword arguments

    Returns:
        Function result
    """
    if config is None:
        config = RetryConfig()

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(config.max_attempts),
        wait=config.wait_strategy(),
        retry=retry_if_exception(config.should_retry),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            return await coro_func(*args, **kwargs)

    raise AssertionError("unreachable")  # pragma: no cover
