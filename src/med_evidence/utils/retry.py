"""
Retry policies for outbound calls.

A policy decides how many attempts an operation gets and how long to wait
between them. Sleep and randomness are injected so tests can run the loop
against a fake clock instead of real time.
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


class RetryExhaustedError(Exception):
    """Raised when every attempt allowed by a policy has failed."""

    def __init__(self, label: str, attempts: int, last_error: BaseException | None):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{label} failed after {attempts} attempts: {last_error}")


class RetryPolicy(ABC):
    """Abstract retry strategy.

    Subclasses only decide the delay after a failed attempt; the attempt loop
    itself lives in `run()`.
    """

    def __init__(self, max_attempts: int, *, sleep: SleepFn | None = None):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self._sleep = sleep

    @abstractmethod
    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)."""
        ...

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
        label: str = "operation",
    ) -> T:
        """Await `operation()` until it succeeds or attempts run out.

        Exceptions not listed in `retry_on` propagate immediately. Once every
        attempt has failed, RetryExhaustedError is raised carrying the last
        error. An error with a non-None `retry_after` attribute sets the wait
        before the next attempt.
        """
        last_error: BaseException | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except retry_on as e:
                last_error = e
                logger.warning(
                    "%s attempt %d/%d failed: %s",
                    label,
                    attempt,
                    self.max_attempts,
                    e,
                )
                if attempt < self.max_attempts:
                    # A server-requested delay (Retry-After) overrides backoff
                    delay = getattr(e, "retry_after", None)
                    if delay is None:
                        delay = self.delay_for(attempt)
                    await (self._sleep or asyncio.sleep)(delay)

        logger.error("%s: all %d attempts failed", label, self.max_attempts)
        raise RetryExhaustedError(label, self.max_attempts, last_error)


class FixedDelayRetry(RetryPolicy):
    """Same pause between every attempt."""

    def __init__(
        self, max_attempts: int, delay: float = 1.0, *, sleep: SleepFn | None = None
    ):
        super().__init__(max_attempts, sleep=sleep)
        self.delay = delay

    def delay_for(self, attempt: int) -> float:
        return self.delay


class ExponentialBackoffRetry(RetryPolicy):
    """Exponential backoff capped at `max_delay`, with optional jitter.

    With jitter enabled the delay is drawn uniformly from
    [delay / 2, delay], so concurrent callers don't retry in lockstep.
    """

    def __init__(
        self,
        max_attempts: int,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        backoff_factor: float = 2.0,
        *,
        jitter: bool = True,
        sleep: SleepFn | None = None,
        rng: Callable[[], float] | None = None,
    ):
        super().__init__(max_attempts, sleep=sleep)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter
        self._rng = rng or random.random

    def delay_for(self, attempt: int) -> float:
        delay = min(
            self.base_delay * (self.backoff_factor ** (attempt - 1)),
            self.max_delay,
        )
        if self.jitter:
            delay = delay / 2 + (delay / 2) * self._rng()
        return delay


def build_retry_policy(
    strategy: str,
    max_attempts: int,
    delay: float,
    max_delay: float = 30.0,
) -> RetryPolicy:
    """Build a policy from the `llm_retry_*` settings."""
    if strategy == "fixed":
        return FixedDelayRetry(max_attempts, delay)
    if strategy == "exponential":
        return ExponentialBackoffRetry(max_attempts, delay, max_delay)
    raise ValueError(f"Unknown retry strategy: {strategy!r}")
