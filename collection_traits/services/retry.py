"""
Retry policy for transient remote failures.

Two shapes are used:
- Ledger discovery: fixed delay, unbounded (availability over liveness).
- Descriptor fetches: exponential backoff with a retry ceiling.

The policy is a plain value so callers and tests can inject their own.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhaustedError(Exception):
    """Raised when an operation still fails after the last allowed retry."""

    def __init__(self, description: str, attempts: int, last_error: BaseException):
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{description} failed after {attempts} attempts: {last_error!r}")


@dataclass(frozen=True)
class RetryPolicy:
    """
    How long to wait between attempts and when to give up.

    Attributes:
        delay: Wait before the first retry, in seconds
        max_retries: Retries after the initial attempt. None retries forever.
        backoff_factor: Multiplier applied to the delay after each retry (1.0 = fixed)
        max_delay: Upper bound on a single wait
    """

    delay: float
    max_retries: int | None = None
    backoff_factor: float = 1.0
    max_delay: float | None = None

    @classmethod
    def fixed(cls, delay: float, max_retries: int | None = None) -> "RetryPolicy":
        return cls(delay=delay, max_retries=max_retries)

    @classmethod
    def exponential(
        cls, base_delay: float, max_retries: int, max_delay: float | None = None
    ) -> "RetryPolicy":
        return cls(delay=base_delay, max_retries=max_retries, backoff_factor=2.0, max_delay=max_delay)

    def delay_for(self, retry: int) -> float:
        """Seconds to wait before retry number `retry` (1-based)."""
        wait = self.delay * self.backoff_factor ** (retry - 1)
        if self.max_delay is not None:
            wait = min(wait, self.max_delay)
        return wait

    def allows(self, retry: int) -> bool:
        """True if retry number `retry` (1-based) may be attempted."""
        return self.max_retries is None or retry <= self.max_retries

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        retry_on: tuple[type[BaseException], ...],
        description: str,
    ) -> T:
        """
        Await `operation` until it succeeds or the policy gives up.

        Only exceptions listed in `retry_on` are retried; anything else
        propagates immediately.

        Raises:
            RetryExhaustedError: If every allowed attempt failed with a retryable error
        """
        retry = 0
        while True:
            try:
                return await operation()
            except retry_on as e:
                retry += 1
                if not self.allows(retry):
                    raise RetryExhaustedError(description, retry, e) from e
                wait = self.delay_for(retry)
                logger.warning(
                    "%s returned %r, retrying in %.1f secs (retry %d)",
                    description,
                    e,
                    wait,
                    retry,
                )
                await asyncio.sleep(wait)
