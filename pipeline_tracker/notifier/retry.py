"""Retry policy for chat API calls."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable

from pipeline_tracker.constants import (
    DISCORD_BASE_DELAY_S,
    DISCORD_JITTER_RATIO,
    DISCORD_MAX_DELAY_S,
    DISCORD_MAX_RETRIES,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff with symmetric jitter.

    `max_retries` counts retries, so a call is tried at most `max_retries + 1` times.
    """

    max_retries: int = DISCORD_MAX_RETRIES
    base_delay_s: float = DISCORD_BASE_DELAY_S
    max_delay_s: float = DISCORD_MAX_DELAY_S
    jitter_ratio: float = DISCORD_JITTER_RATIO

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def compute_delay(
        self,
        retry_index: int,
        retry_after: float | None = None,
        rng: Callable[[], float] = random.random,
    ) -> float:
        """Seconds to wait before retry number `retry_index` (0-based).

        A server-provided `retry_after` replaces the computed backoff; either
        way the result never exceeds `max_delay_s`.
        """
        if retry_after is not None and retry_after >= 0:
            return min(retry_after, self.max_delay_s)

        delay = min(self.base_delay_s * (2.0 ** max(0, retry_index)), self.max_delay_s)
        jitter = delay * self.jitter_ratio * (2.0 * rng() - 1.0)
        return max(0.0, min(delay + jitter, self.max_delay_s))
