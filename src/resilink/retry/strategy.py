r"""Retry strategy for calculating backoff delays."""

from __future__ import annotations

__all__ = ["RetryStrategy"]

from typing import TYPE_CHECKING

from resilink.backoff.exponential import ExponentialBackoff
from resilink.utils.delay import calculate_delay

if TYPE_CHECKING:
    from resilink.backoff.base import BaseBackoffStrategy


class RetryStrategy:
    """Strategy for calculating retry delays with backoff and jitter.

    Args:
        jitter_factor: Factor for adding random jitter to delays.
        backoff_strategy: Backoff strategy instance. Defaults to
            ``ExponentialBackoff()``.
        max_delay: Optional cap on each delay in seconds, jitter included.
    """

    def __init__(
        self,
        jitter_factor: float,
        backoff_strategy: BaseBackoffStrategy | None = None,
        max_delay: float | None = None,
    ) -> None:
        self.jitter_factor = jitter_factor
        self.backoff_strategy: BaseBackoffStrategy = (
            backoff_strategy if backoff_strategy is not None else ExponentialBackoff()
        )
        self.max_delay = max_delay

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay before the next attempt.

        Args:
            attempt: Index of the attempt that just failed (0-indexed).

        Returns:
            Sleep time in seconds.
        """
        return calculate_delay(
            attempt=attempt,
            jitter_factor=self.jitter_factor,
            backoff_strategy=self.backoff_strategy,
            max_delay=self.max_delay,
        )
