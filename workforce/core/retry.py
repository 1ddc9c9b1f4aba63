"""Bounded retry for operations that can fail transiently.

Used for the booking approval transaction (deadlocks, lock timeouts, dropped
connections) and for post-commit publishes to the event bus.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING
from typing import TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSACTION_ERROR_MARKERS = ("deadlock", "timeout", "connection")
PUBLISH_ERROR_MARKERS = ("timeout", "connection", "network")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try and which failures deserve another attempt.

    ``retryable_markers`` are matched case-insensitively against the exception
    class name and message. ``retry_on`` restricts matching to those classes.
    An empty marker tuple retries every exception of a ``retry_on`` class.
    """

    max_attempts: int = 3
    delay: float = 0.0
    retryable_markers: tuple[str, ...] = TRANSACTION_ERROR_MARKERS
    retry_on: tuple[type[BaseException], ...] = (Exception,)

    def __post_init__(self):
        if self.max_attempts < 1:
            msg = "max_attempts must be at least 1"
            raise ValueError(msg)

    def is_retryable(self, exc: BaseException) -> bool:
        if not isinstance(exc, self.retry_on):
            return False
        if not self.retryable_markers:
            return True
        haystack = f"{type(exc).__name__} {exc}".lower()
        return any(marker in haystack for marker in self.retryable_markers)


def run_with_retry(
    func: Callable[[], T],
    *,
    policy: RetryPolicy,
    label: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``func`` until it succeeds or the policy gives up.

    Non-retryable errors propagate immediately; the last retryable error
    propagates once ``policy.max_attempts`` is exhausted.
    """

    attempt = 1
    while True:
        try:
            return func()
        except Exception as exc:
            if attempt >= policy.max_attempts or not policy.is_retryable(exc):
                raise
            logger.warning(
                "%s failed on attempt %s/%s, retrying: %s",
                label,
                attempt,
                policy.max_attempts,
                exc,
            )
            if policy.delay:
                sleep(policy.delay)
            attempt += 1
