"""Retry and backoff utilities for resilient operations.

This module provides exponential backoff retry functionality for async operations,
used by the transaction coordinator to re-run conflicting transactions.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from cadence.core.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_max: float = 30.0
    jitter: bool = True
    retryable_exceptions: tuple[type[Exception], ...] = field(default_factory=lambda: (Exception,))
    # Extra filter applied to exceptions that match retryable_exceptions
    retry_if: Callable[[Exception], bool] | None = None

    def delay_for(self, attempt: int) -> float:
        """Backoff before retrying after the given zero-based attempt, without jitter."""
        return min(self.backoff_base * (2**attempt), self.backoff_max)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    operation_name: str = "operation",
) -> T:
    """
    Execute async function with exponential backoff retry.

    Each retry waits for: min(backoff_base * 2^attempt, backoff_max) seconds,
    with random jitter applied if enabled. Exceptions rejected by
    ``config.retry_if`` propagate immediately.

    Args:
        fn: Async function to execute (no arguments)
        config: Retry configuration, uses defaults if not provided
        operation_name: Name for logging purposes

    Returns:
        Result of fn()

    Raises:
        Exception: The last exception if all retries are exhausted

    Example:
        ```python
        config = RetryConfig(max_attempts=3, backoff_base=0.2, jitter=False, retry_if=is_conflict)
        result = await retry_with_backoff(
            lambda: coordinator.run_transaction(work),
            config=config,
            operation_name="transaction",
        )
        ```
    """
    config = config or RetryConfig()
    last_exception: Exception | None = None

    for attempt in range(config.max_attempts):
        try:
            return await fn()
        except config.retryable_exceptions as e:
            if config.retry_if is not None and not config.retry_if(e):
                raise

            last_exception = e

            if attempt + 1 == config.max_attempts:
                logger.error(
                    "retry_exhausted",
                    operation=operation_name,
                    attempts=config.max_attempts,
                    error=str(e),
                )
                raise

            delay = config.delay_for(attempt)
            if config.jitter:
                delay *= 0.5 + random.random()

            logger.warning(
                "retry_attempt",
                operation=operation_name,
                attempt=attempt + 1,
                max_attempts=config.max_attempts,
                delay_seconds=round(delay, 3),
                error=str(e),
            )
            await asyncio.sleep(delay)

    # Only reached when max_attempts < 1
    if last_exception is not None:
        raise last_exception
    raise RuntimeError("Unexpected state in retry_with_backoff")
