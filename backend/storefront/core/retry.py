"""
Bounded retry for transactional operations.

Usage:
    policy = RetryPolicy(max_attempts=3, retry_if=is_transient_conflict)
    result = await policy.run(lambda: checkout.attempt(...), label="checkout")

Each attempt calls the operation factory again, so every attempt builds
its own session and transaction. Attempts run one after another.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from storefront.core.errors import RetryExhaustedError, is_transient_conflict

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry an async operation while the raised error matches a predicate."""

    max_attempts: int = 3
    retry_if: Callable[[BaseException], bool] = is_transient_conflict
    backoff_seconds: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Exponential delay before the attempt following `attempt`."""
        if self.backoff_seconds <= 0:
            return 0.0
        return self.backoff_seconds * (2 ** (attempt - 1))

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        label: str = "operation",
    ) -> T:
        """
        Run `operation` until it succeeds or attempts run out.

        Errors rejected by `retry_if` propagate at once. When every
        attempt fails with a retryable error, raises RetryExhaustedError
        chained to the last one.
        """
        last_error: BaseException | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                if not self.retry_if(e):
                    raise
                last_error = e
                logger.warning(
                    f"{label} attempt {attempt}/{self.max_attempts} hit a transient error: {e}"
                )

            if attempt < self.max_attempts:
                delay = self.delay_for(attempt)
                if delay:
                    await asyncio.sleep(delay)

        logger.error(f"{label} failed after {self.max_attempts} attempts")
        raise RetryExhaustedError(self.max_attempts) from last_error
