from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry policy.

    - max_attempts counts the initial attempt (max_attempts=4 => 1 try + 3 retries).
    - delay_seconds is a fixed pause between attempts (0 retries immediately).
    """

    max_attempts: int = 4
    delay_seconds: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")


@dataclass(frozen=True)
class RetryEvent:
    operation: str
    failure_attempt: int
    next_attempt: int
    max_attempts: int

    delay_seconds: float
    reason: str | None

    error_type: str
    error_message: str


class RetriesExhausted(Exception):
    """Raised when a retryable failure is still failing on the last allowed attempt."""

    def __init__(self, operation: str, *, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"{operation} failed after {attempts} attempts: {last_error}")
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


IsRetryableFn = Callable[[BaseException], tuple[bool, str | None]]
OnRetryFn = Callable[[RetryEvent], None]
SleepFn = Callable[[float], None]


def call_with_retries(
    fn: Callable[[], T],
    *,
    policy: RetryPolicy,
    is_retryable: IsRetryableFn,
    operation: str,
    on_retry: OnRetryFn | None = None,
    sleep_fn: SleepFn | None = None,
    first_attempt: int = 1,
) -> T:
    """
    Call fn() again on retryable failures until policy.max_attempts is reached.

    first_attempt lets a caller resume a budget it already partly spent
    (first_attempt=3 with max_attempts=4 leaves two calls).

    Non-retryable failures are re-raised unchanged. A retryable failure on the last
    allowed attempt raises RetriesExhausted chained to the original error.
    """
    op = (operation or "").strip() or "operation"
    sleeper = sleep_fn or time.sleep
    max_attempts = int(policy.max_attempts)

    start = max(1, int(first_attempt))
    if start > max_attempts:
        raise ValueError(f"first_attempt={start} exceeds max_attempts={max_attempts}")

    attempt = start
    while True:
        try:
            return fn()
        except Exception as exc:
            retryable, reason = is_retryable(exc)
            if not retryable:
                raise
            if attempt >= max_attempts:
                raise RetriesExhausted(op, attempts=attempt, last_error=exc) from exc

            if on_retry is not None:
                on_retry(
                    RetryEvent(
                        operation=op,
                        failure_attempt=attempt,
                        next_attempt=attempt + 1,
                        max_attempts=max_attempts,
                        delay_seconds=float(policy.delay_seconds),
                        reason=reason,
                        error_type=type(exc).__name__,
                        error_message=(str(exc) or "").strip(),
                    )
                )

            if policy.delay_seconds > 0:
                sleeper(float(policy.delay_seconds))
            attempt += 1
