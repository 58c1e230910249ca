"""Exponential backoff with a max-attempts bound."""

from __future__ import annotations

import random
from datetime import datetime, timedelta


class RetryPolicy:
    """Configurable retry with exponential backoff and jitter."""

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 300.0,
        jitter: bool = False,
    ) -> None:
        """Configure retry behavior.

        Args:
            max_attempts: Maximum number of delivery attempts (including first).
            base_delay: Delay unit in seconds; the delay after attempt ``n``
                is ``base_delay * 2**n``.
            max_delay: Cap on delay in seconds.
            jitter: If True, multiply delays by a random factor in [0.5, 1.5]
                to avoid a thundering herd of synchronized retries.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("base_delay and max_delay must be >= 0")
        if base_delay > max_delay:
            raise ValueError("base_delay must be <= max_delay")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_attempts={self.max_attempts}, "
            f"base_delay={self.base_delay}, max_delay={self.max_delay}, "
            f"jitter={self.jitter})"
        )

    def should_retry(self, attempt_count: int) -> bool:
        """Return True if another attempt is allowed after ``attempt_count`` attempts."""
        return 0 <= attempt_count < self.max_attempts

    def delay_for_attempt(self, attempt_count: int) -> float:
        """Return the backoff in seconds after ``attempt_count`` attempts.

        ``base_delay * 2**attempt_count``, jittered when enabled, then capped
        by ``max_delay``.
        """
        if attempt_count < 0:
            return 0.0
        delay = min(self.base_delay * (2 ** min(attempt_count, 62)), self.max_delay)
        if self.jitter:
            jittered = delay * (0.5 + random.random())  # noqa: S311
            delay = min(jittered, self.max_delay)
        return float(max(0.0, delay))

    def next_visible_at(self, attempt_count: int, now: datetime) -> datetime:
        """Earliest time a job failed after ``attempt_count`` attempts may run again."""
        return now + timedelta(seconds=self.delay_for_attempt(attempt_count))
