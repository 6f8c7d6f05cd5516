"""Exponential backoff for idempotent API reads."""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

__all__ = ["RetryConfig", "RetryExhausted", "retry_with_backoff", "NO_RETRY"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 2
    base_delay: float = 0.5  # seconds
    max_delay: float = 8.0  # seconds
    exponential_base: float = 2.0
    jitter: bool = True

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-indexed), +/- 25% jitter."""
        delay = min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)
        if self.jitter:
            spread = delay * 0.25
            delay += random.uniform(-spread, spread)
        return max(0.0, delay)


NO_RETRY = RetryConfig(max_retries=0, jitter=False)


class RetryExhausted(Exception):
    """All retry attempts exhausted."""

    def __init__(self, attempts: int, last_error: Optional[Exception] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Retry exhausted after {attempts} attempts")


def retry_with_backoff(
    func: Callable[[], T],
    config: Optional[RetryConfig] = None,
    retryable_exceptions: tuple = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``func`` until it succeeds or the retry budget runs out.

    Exceptions outside ``retryable_exceptions`` propagate immediately.

    Raises:
        RetryExhausted: wrapping the last retryable error
    """
    config = config or RetryConfig()
    last_error: Optional[Exception] = None

    for attempt in range(config.max_retries + 1):
        try:
            return func()
        except retryable_exceptions as e:
            last_error = e
            if attempt >= config.max_retries:
                break
            delay = config.delay_for(attempt)
            logger.warning(f"Attempt {attempt + 1} failed: {e}. Retrying in {delay:.1f}s...")
            sleep(delay)

    raise RetryExhausted(config.max_retries + 1, last_error)
