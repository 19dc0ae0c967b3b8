"""Bounded retry with linear backoff for FLUX submissions."""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from ..cancellation import CancellationToken, cancellable_sleep
from ..config import RetryConfig
from ..errors import TryOnCancelledError, TryOnError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Run an async operation up to ``max_attempts`` times.

    The delay before attempt ``n`` (n >= 2) is ``base_delay * (n - 1)``.
    Only errors marked ``retryable`` (network, rate limit, server) are
    retried. The app this pipeline replaces retried every error, including
    rejected credentials; set ``retry_terminal_errors`` to get that back.
    Cancellation is never retried.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        on_attempt: Callable[[int], None] | None = None,
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._on_attempt = on_attempt

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before ``attempt`` (1-based)."""
        return self.config.base_delay * (attempt - 1)

    def should_retry(self, error: Exception) -> bool:
        if isinstance(error, TryOnCancelledError):
            return False
        if self.config.retry_terminal_errors:
            return isinstance(error, TryOnError)
        return isinstance(error, TryOnError) and error.retryable

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        cancel: CancellationToken | None = None,
        description: str = "request",
    ) -> T:
        """Call ``operation`` until it succeeds or attempts run out.

        The last error is re-raised unchanged.
        """
        max_attempts = self.config.max_attempts
        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = self.delay_before(attempt)
                logger.info("Retrying %s in %.1fs (attempt %d/%d)", description, delay, attempt, max_attempts)
                await self._wait(delay, cancel)
            if self._on_attempt is not None:
                self._on_attempt(attempt)

            try:
                return await operation()
            except TryOnError as exc:
                logger.warning("%s attempt %d/%d failed: %s", description, attempt, max_attempts, exc)
                if attempt == max_attempts or not self.should_retry(exc):
                    raise

        raise AssertionError("unreachable")  # the loop always returns or raises

    async def _wait(self, delay: float, cancel: CancellationToken | None) -> None:
        if self._sleep is not None:
            await self._sleep(delay)
            if cancel is not None:
                cancel.raise_if_cancelled()
        else:
            await cancellable_sleep(delay, cancel)
