"""Retry timing parameters for robust provider calls"""  # noqa: D415

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..constants import (
    RATE_LIMIT_BACKOFF_BASE,
    RATE_LIMIT_BACKOFF_CEILING,
    RATE_LIMIT_HINT_BUFFER,
    TRANSIENT_RETRY_DELAY,
)

if TYPE_CHECKING:
    from ..config.types import FrozenConfig


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Delays applied between attempts, in seconds"""  # noqa: D415

    transient_delay: float = TRANSIENT_RETRY_DELAY
    backoff_base: float = RATE_LIMIT_BACKOFF_BASE
    backoff_ceiling: float = RATE_LIMIT_BACKOFF_CEILING
    hint_buffer: float = RATE_LIMIT_HINT_BUFFER

    def backoff(self, attempt: int) -> float:
        """Exponential backoff for the zero-based ``attempt``, capped at the ceiling."""
        return min(self.backoff_ceiling, self.backoff_base * (2**attempt))

    def rate_limit_delay(self, attempt: int, wait_hint: float | None) -> float:
        """Pause after a rate limit: the larger of the provider hint and the backoff."""
        backoff = self.backoff(attempt)
        if wait_hint is None:
            return backoff
        return max(wait_hint, backoff)

    @classmethod
    def from_config(cls, config: FrozenConfig) -> RetryPolicy:
        """Build a policy from resolved configuration."""
        return cls(
            transient_delay=config.transient_delay_seconds,
            backoff_base=config.backoff_base_seconds,
            backoff_ceiling=config.backoff_ceiling_seconds,
            hint_buffer=config.rate_limit_buffer_seconds,
        )
