"""Bounded retry driven by an error classifier.

One combinator serves every retrying step of the engine. Each step supplies
an attempt budget, a delay schedule, and a classifier mapping a raised
exception to one of three decisions:

- :class:`Retry` -- sleep (schedule delay, or the decision's own delay) and
  try again while attempts remain.
- :class:`Fatal` -- stop immediately and raise the decision's error.
- :class:`Degrade` -- invoke the caller's degrade hook once and retry
  immediately without consuming an attempt.

Example:
    >>> policy = RetryPolicy(max_attempts=3, delays=(1.0, 2.0))
    >>> await retry_with_classifier(
    ...     call_store,
    ...     policy=policy,
    ...     classify=lambda exc: Retry() if isinstance(exc, Busy) else Fatal(exc),
    ... )
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


@dataclass(frozen=True, slots=True)
class Retry:
    """Retry after ``delay`` seconds, or after the policy's delay if None."""

    delay: float | None = None


@dataclass(frozen=True, slots=True)
class Fatal:
    """Stop and raise ``error`` (chained to the original exception)."""

    error: BaseException


@dataclass(frozen=True, slots=True)
class Degrade:
    """Apply the degrade hook and retry immediately, at most once."""


Decision = Retry | Fatal | Degrade
Classifier = Callable[[Exception], Decision]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Attempt budget and delay schedule.

    Attributes:
        max_attempts: Total attempts including the first one (>= 1).
        delays: Delay after the n-th failed attempt is ``delays[n - 1]``;
            the last entry repeats if the schedule is shorter than the budget.
    """

    max_attempts: int
    delays: tuple[float, ...] = ()

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {self.max_attempts}"
            raise ValueError(msg)
        if any(d < 0 for d in self.delays):
            msg = f"delays must be non-negative, got {self.delays}"
            raise ValueError(msg)

    @classmethod
    def linear(cls, max_attempts: int, step: float) -> RetryPolicy:
        """Policy waiting ``step``, ``2 * step``, ... between attempts."""
        return cls(
            max_attempts=max_attempts,
            delays=tuple(step * n for n in range(1, max_attempts)),
        )

    def delay_after(self, attempt: int) -> float:
        """Delay to apply after the given (1-based) failed attempt."""
        if not self.delays:
            return 0.0
        return self.delays[min(attempt, len(self.delays)) - 1]

    def total_delay(self) -> float:
        """Sum of delays slept when every attempt fails."""
        return sum(self.delay_after(n) for n in range(1, self.max_attempts))


@dataclass(slots=True)
class AttemptTracker:
    """Mutable per-request record of the step currently being retried.

    Read by the orchestrator to report diagnostics when the overall deadline
    cancels a step mid-retry.
    """

    step: str | None = None
    attempts: int = 0

    def begin(self, step: str) -> None:
        self.step = step
        self.attempts = 0


class RetryExhaustedError(Exception):
    """Raised when every attempt failed with a retryable classification.

    Attributes:
        last_error: Exception from the final attempt.
        attempts: Attempts made.
        elapsed_seconds: Time from first attempt to giving up.
    """

    def __init__(self, last_error: Exception, attempts: int, elapsed_seconds: float) -> None:
        self.last_error = last_error
        self.attempts = attempts
        self.elapsed_seconds = elapsed_seconds
        super().__init__(f"Gave up after {attempts} attempts ({elapsed_seconds:.2f}s): {last_error}")


async def retry_with_classifier(
    operation: Callable[[int], Awaitable[T]],
    *,
    policy: RetryPolicy,
    classify: Classifier,
    on_degrade: Callable[[Exception], None] | None = None,
    tracker: AttemptTracker | None = None,
    sleep: Sleep = asyncio.sleep,
    clock: Clock = time.monotonic,
) -> T:
    """Run ``operation`` until it succeeds, fails fatally, or the budget runs out.

    Args:
        operation: Async callable receiving the 1-based attempt number.
        policy: Attempt budget and delay schedule.
        classify: Maps a raised exception to a decision.
        on_degrade: Hook applied on a Degrade decision. Without a hook, or on
            a second Degrade, the exception is re-raised as is.
        tracker: Updated with the current attempt number.
        sleep: Suspension function used between attempts.
        clock: Monotonic clock used for elapsed time.

    Returns:
        The operation's result.

    Raises:
        RetryExhaustedError: If the final allowed attempt failed retryably.
        BaseException: The error carried by a Fatal decision.
    """
    started = clock()
    attempt = 0
    degraded = False
    while True:
        attempt += 1
        if tracker is not None:
            tracker.attempts = attempt
        try:
            return await operation(attempt)
        except Exception as exc:
            decision = classify(exc)

            if isinstance(decision, Fatal):
                if decision.error is exc:
                    raise
                raise decision.error from exc

            if isinstance(decision, Degrade):
                if on_degrade is None or degraded:
                    raise
                degraded = True
                on_degrade(exc)
                attempt -= 1
                continue

            if attempt >= policy.max_attempts:
                raise RetryExhaustedError(exc, attempt, clock() - started) from exc

            delay = decision.delay if decision.delay is not None else policy.delay_after(attempt)
            logger.debug(
                "retry_scheduled",
                extra={
                    "attempt": attempt,
                    "max_attempts": policy.max_attempts,
                    "delay_seconds": delay,
                    "error_type": type(exc).__name__,
                },
            )
            await sleep(delay)
