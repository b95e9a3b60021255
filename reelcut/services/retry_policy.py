"""Reusable retry policy for calls to rate-limited services."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from ..domain.exceptions import RateLimitedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def exponential_backoff(base_seconds: float = 1.0) -> Callable[[int, Exception], float]:
    """Delay of ``base * 2**(attempt - 1)``, or the service hint when present."""

    def delay(attempt: int, error: Exception) -> float:
        retry_after_ms = getattr(error, "retry_after_ms", None)
        if retry_after_ms is not None and retry_after_ms >= 0:
            return retry_after_ms / 1000
        return base_seconds * (2 ** (attempt - 1))

    return delay


def is_rate_limited(error: Exception) -> bool:
    return isinstance(error, RateLimitedError)


@dataclass
class RetryPolicy:
    """How many times to call, how long to wait, and which errors to retry.

    Attributes:
        max_attempts: Total number of calls, including the first
        backoff: Seconds to wait after the given failed attempt
        retryable: Predicate selecting errors worth retrying
        sleep: Sleep function, replaceable in tests
    """

    max_attempts: int = 3
    backoff: Callable[[int, Exception], float] = field(
        default_factory=exponential_backoff
    )
    retryable: Callable[[Exception], bool] = is_rate_limited
    sleep: Callable[[float], None] = time.sleep

    def run(self, operation: Callable[[], T], description: str = "call") -> T:
        """Call ``operation`` until it succeeds or the policy gives up.

        Non-retryable errors propagate at once. When attempts run out, the
        last retryable error propagates.
        """
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        attempt = 1
        while True:
            try:
                return operation()
            except Exception as e:
                if not self.retryable(e) or attempt >= self.max_attempts:
                    raise
                delay = self.backoff(attempt, e)
                logger.warning(
                    f"{description} attempt {attempt}/{self.max_attempts} failed "
                    f"({e}). Retrying in {delay:.2f}s"
                )
                self.sleep(delay)
                attempt += 1
