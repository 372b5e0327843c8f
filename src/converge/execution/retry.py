"""Bounded exponential backoff for provider calls."""

import time
from typing import Callable, Optional, TypeVar
from pydantic import BaseModel, Field
from ..utils.logging import get_logger

logger = get_logger("execution.retry")

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Retry settings for transient provider errors."""
    max_attempts: int = Field(default=5, ge=1, description="Total attempts, first call included")
    base_delay: float = Field(default=1.0, ge=0, description="Delay before the second attempt (seconds)")
    factor: float = Field(default=2.0, ge=1, description="Backoff multiplier")
    max_delay: float = Field(default=30.0, ge=0, description="Upper bound for a single delay")

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        return min(self.base_delay * (self.factor ** (attempt - 1)), self.max_delay)


def call_with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy,
    is_retryable: Callable[[BaseException], bool],
    sleep: Callable[[float], None] = time.sleep,
    description: str = "provider call",
    on_attempt: Optional[Callable[[int], None]] = None
) -> T:
    """
    Call fn, retrying errors classified retryable until attempts run out.

    Non-retryable errors and the last retryable error propagate unchanged.
    """
    attempt = 0
    while True:
        attempt += 1
        if on_attempt is not None:
            on_attempt(attempt)
        try:
            return fn()
        except Exception as e:
            if not is_retryable(e) or attempt >= policy.max_attempts:
                if attempt > 1:
                    logger.warning(f"{description} failed after {attempt} attempt(s): {e}")
                raise
            delay = policy.delay_for(attempt)
            logger.info(f"{description} failed with retryable error ({e}); retrying in {delay:.1f}s "
                        f"(attempt {attempt + 1}/{policy.max_attempts})")
            sleep(delay)
