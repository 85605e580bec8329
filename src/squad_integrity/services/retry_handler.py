"""Retry handling for store calls.

Store reads and writes are the only operations in a run that can fail
transiently. Each one gets at most one retry after a short, jittered
backoff; after that the failure belongs to the enclosing step.

Example usage:
    handler = RetryHandler(RetryConfig(base_delay=0.5))

    players = await handler.execute(
        store.players.fetch_all, operation_name="fetch_players"
    )
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from squad_integrity.services.db.connection import DatabaseError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Store calls are retried at most once
MAX_RETRIES = 1


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_retries: Retry attempts after the first call (0 or 1)
        base_delay: Delay in seconds before the retry
        jitter_factor: Random jitter as fraction of delay
        retryable_errors: Exception types treated as transient
    """

    max_retries: int = MAX_RETRIES
    base_delay: float = 0.5
    jitter_factor: float = 0.1
    retryable_errors: tuple[type[Exception], ...] = field(
        default_factory=lambda: (DatabaseError,)
    )

    def __post_init__(self) -> None:
        if not 0 <= self.max_retries <= MAX_RETRIES:
            raise ValueError(f"max_retries must be between 0 and {MAX_RETRIES}")
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")


@dataclass
class RetryResult:
    """Outcome of a call run through execute_with_result().

    Attributes:
        value: The returned value if successful
        attempts: Total number of attempts made (1 = no retry)
        final_error: The error if every attempt failed, None if successful
    """

    value: Any = None
    attempts: int = 1
    final_error: Exception | None = None

    @property
    def is_successful(self) -> bool:
        return self.final_error is None

    @property
    def was_retried(self) -> bool:
        return self.attempts > 1


class RetryHandler:
    """Runs async store calls with a bounded retry."""

    def __init__(self, config: RetryConfig | None = None) -> None:
        self.config = config or RetryConfig()

    def calculate_delay(self) -> float:
        """Backoff before the retry, with jitter."""
        delay = self.config.base_delay
        jitter = delay * self.config.jitter_factor * random.random()  # noqa: S311
        return delay + jitter

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str = "operation",
    ) -> T:
        """Run operation, retrying once on a transient error.

        Raises:
            The last transient error once the budget is spent, or any
            non-transient error immediately.
        """
        result = await self.execute_with_result(operation, operation_name=operation_name)
        if result.final_error is not None:
            raise result.final_error
        value: T = result.value
        return value

    async def execute_with_result(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str = "operation",
    ) -> RetryResult:
        """Run operation and report the outcome instead of raising.

        Non-transient errors propagate unchanged.
        """
        attempts = self.config.max_retries + 1

        for attempt in range(attempts):
            try:
                value = await operation()
            except self.config.retryable_errors as e:
                if attempt + 1 >= attempts:
                    logger.error(f"{operation_name} failed after {attempt + 1} attempts: {e}")
                    return RetryResult(attempts=attempt + 1, final_error=e)

                delay = self.calculate_delay()
                logger.warning(
                    f"{operation_name} failed (attempt {attempt + 1}/{attempts}): "
                    f"{e}. Retrying in {delay:.2f}s"
                )
                await asyncio.sleep(delay)
            else:
                if attempt > 0:
                    logger.info(f"{operation_name} succeeded after {attempt + 1} attempts")
                return RetryResult(value=value, attempts=attempt + 1)

        # Unreachable: the loop always returns
        return RetryResult(attempts=attempts)
