"""
Retry backoff for dependency downloads.

Attempts are strictly sequential: attempt N+1 starts only after attempt N
has fully failed, separated by an exponential delay with jitter.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from modelforge.config import FetchConfig


@dataclass
class BackoffConfig:
    """Configuration for exponential backoff."""

    base_delay_ms: int = 500
    max_delay_ms: int = 30_000
    multiplier: float = 2.0
    jitter_factor: float = 0.5  # 0.5 = +-50% jitter
    max_attempts: int = 10

    @classmethod
    def from_fetch_config(cls, config: FetchConfig) -> BackoffConfig:
        return cls(
            base_delay_ms=config.backoff_base_ms,
            max_delay_ms=config.backoff_max_ms,
            jitter_factor=config.backoff_jitter,
            max_attempts=config.max_attempts,
        )


@dataclass
class BackoffState:
    """Mutable per-download attempt tracking."""

    attempt: int = 0
    consecutive_errors: int = 0
    last_error_time_ms: int = 0
    last_error: str | None = None

    def reset(self) -> None:
        """Reset after a successful attempt."""
        self.attempt = 0
        self.consecutive_errors = 0
        self.last_error = None

    def record_error(self, error: str) -> None:
        self.attempt += 1
        self.consecutive_errors += 1
        self.last_error_time_ms = int(time.time() * 1000)
        self.last_error = error

    def exhausted(self, config: BackoffConfig) -> bool:
        return self.attempt >= config.max_attempts


def compute_backoff_delay(
    config: BackoffConfig,
    state: BackoffState,
    *,
    rng: random.Random | None = None,
) -> int:
    """
    Compute the delay before the next attempt.

    Args:
        config: Backoff configuration.
        state: Current backoff state.
        rng: Optional seeded Random instance for deterministic jitter.

    Returns:
        Delay in milliseconds (0 before the first failure).
    """
    if state.attempt == 0:
        return 0

    delay = config.base_delay_ms * (config.multiplier ** (state.attempt - 1))

    jitter_min = 1.0 - config.jitter_factor
    jitter_max = 1.0 + config.jitter_factor
    if rng is not None:
        jitter_multiplier = rng.uniform(jitter_min, jitter_max)
    else:
        jitter_multiplier = random.uniform(jitter_min, jitter_max)
    delay = delay * jitter_multiplier

    return int(min(delay, config.max_delay_ms))
