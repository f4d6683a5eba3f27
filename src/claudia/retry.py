"""Retry manager with exponential backoff and negative jitter."""

from __future__ import annotations

import random
from typing import Protocol

from .cancellation import AbortSignal, sleep
from .logging import logger
from .types import Retry


class RandomSource(Protocol):
    def random(self) -> float: ...


def get_delay(
    attempts_used: int,
    max_retries: int,
    *,
    rng: RandomSource | None = None,
    config: Retry | None = None,
) -> float:
    """Delay in seconds before the next attempt.

    ``min(base_delay * 2**attempts_used, max_delay)`` scaled by a random
    factor in ``[1 - jitter, 1.0]``. Jitter only shortens the delay, so the
    result never exceeds ``max_delay``.
    """
    config = config or Retry()
    source = rng or random
    capped = min(config.base_delay * (2**attempts_used), config.max_delay)
    delay = capped * (1 - source.random() * config.jitter)
    logger.debug(
        f"Retry delay: {delay:.2f}s (attempt {attempts_used + 1}/{max_retries})"
    )
    return delay


class RetryManager:
    """Attempt counter for one request.

    Starts with ``max_retries`` retries remaining; each recorded failure
    uses one up. Once none remain the next failure is terminal.
    """

    def __init__(
        self,
        max_retries: int,
        config: Retry | None = None,
        rng: RandomSource | None = None,
    ):
        self.config = config or Retry()
        self.max_retries = max(0, max_retries)
        self.retries_remaining = self.max_retries
        self._rng = rng

    @property
    def attempts_used(self) -> int:
        return self.max_retries - self.retries_remaining

    def should_retry(self) -> bool:
        return self.retries_remaining > 0

    def record_attempt(self) -> None:
        self.retries_remaining -= 1

    def get_delay(self) -> float:
        return get_delay(
            self.attempts_used, self.max_retries, rng=self._rng, config=self.config
        )

    async def wait(self, signal: AbortSignal | None = None) -> float:
        """Sleep for the next backoff delay; ``AbortError`` if ``signal`` fires."""
        delay = self.get_delay()
        await sleep(delay, signal)
        return delay

    def get_state(self) -> dict[str, int]:
        return {
            "max_retries": self.max_retries,
            "retries_remaining": self.retries_remaining,
            "attempts_used": self.attempts_used,
        }
