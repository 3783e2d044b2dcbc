"""RetryPolicy for bulk submissions that fail at the transport level."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    """How often a bulk request is resubmitted, and how long to wait in between.

    ``max_attempts`` counts the first submission, so the default of 1 never
    retries: a batch whose request fails is logged and dropped for this pass.
    Waits double from ``base_delay`` up to ``max_delay``; with ``jitter`` each
    wait is scaled by a random factor in [0.5, 1.5].
    """

    max_attempts: int = 1
    base_delay: float = 0.5
    max_delay: float = 30.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if min(self.base_delay, self.max_delay) < 0:
            raise ValueError("delays must not be negative")
        if self.base_delay > self.max_delay:
            raise ValueError("base_delay must not exceed max_delay")

    def should_retry(self, attempt: int) -> bool:
        """True if the 1-based ``attempt`` that just failed may be followed by another."""
        return 1 <= attempt < self.max_attempts

    def delay_for_attempt(self, attempt: int) -> float:
        if attempt < 1:
            return 0.0
        delay = min(self.base_delay * 2 ** (attempt - 1), self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random()  # noqa: S311
        return float(delay)

    async def wait_before_retry(self, attempt: int) -> None:
        delay = self.delay_for_attempt(attempt)
        if delay > 0:
            await asyncio.sleep(delay)
