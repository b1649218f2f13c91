"""Retry policy for reasoning provider calls.

Only ``ProviderError`` is retried. The policy returns a ``RetryOutcome`` so
that "retries exhausted" is an ordinary value the decision loop branches on.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

from simulation.errors import ProviderError, StepFatalError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Floor for the backoff base, so a zero base delay still escalates.
MIN_BACKOFF_SECONDS = 0.01


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """Result of ``RetryPolicy.run``.

    Exactly one holds: ``value`` is set, ``error`` is set, or ``cancelled`` is
    true because the run was cancelled between attempts.
    """

    value: T | None = None
    error: StepFatalError | None = None
    attempts: int = 0
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.cancelled


class RetryPolicy:
    """Up to ``max_retries`` retries with exponential backoff.

    The delay before retry *n* (0-based) is ``base * 2**n`` where ``base`` is
    ``max(base_delay, MIN_BACKOFF_SECONDS)``, so every retry waits strictly
    longer than the one before.
    """

    def __init__(
        self,
        max_retries: int,
        base_delay: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}.")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number *attempt* (0-based)."""
        return max(self.base_delay, MIN_BACKOFF_SECONDS) * (2 ** attempt)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        should_stop: Callable[[], bool] | None = None,
        label: str = "provider call",
    ) -> RetryOutcome[T]:
        """Call *operation* until it succeeds or retries run out.

        *should_stop* is checked after each retryable failure; once it returns
        true no further attempts are made and the outcome is ``cancelled``.
        """
        last_error: ProviderError | None = None
        attempts = 0

        for attempt in range(self.max_retries + 1):
            attempts = attempt + 1
            try:
                value = await operation()
                return RetryOutcome(value=value, attempts=attempts)
            except ProviderError as exc:
                last_error = exc

            if not last_error.retryable:
                logger.error("%s failed with a non-retryable error: %s", label, last_error)
                break
            if should_stop is not None and should_stop():
                logger.info("Not retrying %s: run cancelled", label)
                return RetryOutcome(cancelled=True, attempts=attempts)
            if attempt == self.max_retries:
                logger.error("All %d attempts failed for %s: %s", attempts, label, last_error)
                break

            delay = self.delay_for(attempt)
            logger.warning(
                "Attempt %d/%d failed for %s (%s), retrying in %.2fs",
                attempts,
                self.max_retries + 1,
                label,
                last_error,
                delay,
            )
            await self._sleep(delay)

        return RetryOutcome(
            error=StepFatalError(
                f"provider exhausted after {attempts} attempt(s): {last_error}",
                attempts=attempts,
                last_error=last_error,
            ),
            attempts=attempts,
        )
