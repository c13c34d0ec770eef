"""Bounded retry for transient store failures."""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from record_workflow.errors import BackendUnavailable

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for BackendUnavailable; other errors are never retried."""

    attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 5.0

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the given (zero-based) failed attempt."""
        return min(self.base_delay * (2**attempt), self.max_delay)


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    description: str = "store call",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run an operation, retrying while it raises BackendUnavailable.

    Raises:
        BackendUnavailable: If every attempt failed
    """
    attempts = max(policy.attempts, 1)
    attempt = 0
    while True:
        try:
            return operation()
        except BackendUnavailable as e:
            attempt += 1
            if attempt >= attempts:
                logger.error("Store call failed after retries", operation=description, attempts=attempts)
                raise
            delay = policy.delay(attempt - 1)
            logger.warning(
                "Store unavailable, retrying", operation=description, attempt=attempt, delay=delay, error=str(e)
            )
            sleep(delay)
