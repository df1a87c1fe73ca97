"""Exponential backoff retry policy for async operations.

Wraps a single awaitable-producing callable. Used around every individual
model call so one transient failure costs one retry cycle, never a whole
agent loop.

Delay after failed attempt n (1-based):
    min(base_delay * 2 ** (n - 1), max_delay)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field


logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[Exception, int], None]
SleepFunc = Callable[[float], Awaitable[None]]


class RetryConfig(BaseModel):
    """Configuration for model-call retry behavior."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Total attempts including the first call",
    )
    base_delay: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Delay in seconds after the first failure",
    )
    max_delay: float = Field(
        default=10.0,
        ge=0.0,
        le=300.0,
        description="Upper bound for any single delay",
    )

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given failed attempt (1-based)."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


DEFAULT_RETRY = RetryConfig()


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    on_retry: RetryCallback | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or attempts are exhausted.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        config: Retry configuration (defaults to 3 attempts, 1s base, 10s cap)
        on_retry: Called with (error, attempt) before each backoff sleep
        sleep: Sleep coroutine, injectable for tests

    Returns:
        The operation's result

    Raises:
        Exception: The last error once all attempts have failed
    """
    config = config or DEFAULT_RETRY
    last_error: Exception | None = None

    for attempt in range(1, config.max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            if attempt >= config.max_attempts:
                break
            delay = config.delay_for(attempt)
            logger.info(
                "Attempt %d/%d failed (%s), retrying in %.1fs",
                attempt,
                config.max_attempts,
                e,
                delay,
            )
            if on_retry is not None:
                on_retry(e, attempt)
            await sleep(delay)

    assert last_error is not None
    raise last_error
