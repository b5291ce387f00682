"""
Bounded retry with per-attempt timeout and exponential backoff for fetches.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from .exceptions import ConfigError, FetchError, FetchFailed, require

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_EXCEPTIONS = (
    FetchError,
    TimeoutError,
    asyncio.TimeoutError,
    OSError,
)


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, FetchError):
        return exc.retryable
    return isinstance(exc, RETRYABLE_EXCEPTIONS)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_s: float = 1.0
    max_delay_s: float = 8.0
    jitter_s: float = 0.0

    def __post_init__(self):
        require(self.max_attempts >= 1, "max_attempts must be >= 1.", ConfigError)
        require(self.base_delay_s >= 0, "base_delay_s must be >= 0.", ConfigError)
        require(self.max_delay_s >= 0, "max_delay_s must be >= 0.", ConfigError)
        require(self.jitter_s >= 0, "jitter_s must be >= 0.", ConfigError)

    def backoff(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        delay = min(self.max_delay_s, self.base_delay_s * (2 ** (attempt - 1)))
        if self.jitter_s:
            delay += random.uniform(0, self.jitter_s)
        return delay

    async def call(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        timeout_s: float,
        label: str = "",
    ) -> T:
        """
        Await ``fn(*args)`` with a timeout per attempt.

        Raises FetchFailed when attempts run out or the failure is not
        retryable. Cancellation propagates untouched.
        """
        name = label or getattr(fn, "__name__", "fetch")
        last_exc: BaseException | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await asyncio.wait_for(fn(*args), timeout=timeout_s)
            except RETRYABLE_EXCEPTIONS as exc:
                last_exc = exc
                if not is_retryable(exc):
                    raise FetchFailed(
                        f"{name} failed with non-retryable error: {exc}",
                        attempts=attempt,
                    ) from exc
                if attempt < self.max_attempts:
                    delay = self.backoff(attempt)
                    logger.warning(
                        "Retry %d/%d for %s after %s (delay %.1fs)",
                        attempt,
                        self.max_attempts - 1,
                        name,
                        type(exc).__name__,
                        delay,
                    )
                    await asyncio.sleep(delay)
            except Exception as exc:
                # Unknown failures are not retried
                raise FetchFailed(
                    f"{name} failed with unexpected error: {exc!r}",
                    attempts=attempt,
                ) from exc

        raise FetchFailed(
            f"{name} failed after {self.max_attempts} attempt(s): {last_exc!r}",
            attempts=self.max_attempts,
        ) from last_exc
