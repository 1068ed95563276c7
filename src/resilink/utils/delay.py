r"""Backoff delay calculation with jitter.

This module provides the function used by the retry executor to turn
an attempt index into the number of seconds to wait before the next
attempt.
"""

from __future__ import annotations

__all__ = ["calculate_delay"]

import logging
import random
from typing import TYPE_CHECKING

from resilink.backoff.exponential import ExponentialBackoff

if TYPE_CHECKING:
    from resilink.backoff.base import BaseBackoffStrategy

logger: logging.Logger = logging.getLogger(__name__)


def calculate_delay(
    attempt: int,
    jitter_factor: float,
    backoff_strategy: BaseBackoffStrategy | None = None,
    max_delay: float | None = None,
) -> float:
    """Calculate the delay before the next attempt, jitter included.

    The delay is calculated as follows:
    1. base = backoff_strategy.calculate(attempt)
    2. jitter = random.uniform(0, jitter_factor) * base, added to base
    3. the total is capped at max_delay (if set)

    With the default strategy and a jitter factor of 0.1 the result for
    attempt ``i`` lies in ``[2**i, 1.1 * 2**i]`` seconds and never
    exceeds ``max_delay``.

    Args:
        attempt: The index of the attempt that just failed (0-indexed).
        jitter_factor: Factor for the random jitter ADDED to the base
            delay. Set to 0 to disable jitter.
        backoff_strategy: Strategy computing the base delay. Defaults to
            ``ExponentialBackoff()`` (base 1s, cap 30s).
        max_delay: Optional cap on the total delay in seconds.

    Returns:
        The delay in seconds.

    Example:
        ```pycon
        >>> from resilink.utils.delay import calculate_delay
        >>> calculate_delay(attempt=0, jitter_factor=0.0)
        1.0
        >>> calculate_delay(attempt=2, jitter_factor=0.0)
        4.0
        >>> calculate_delay(attempt=2, jitter_factor=0.0, max_delay=3.0)
        3.0

        ```
    """
    if backoff_strategy is None:
        backoff_strategy = ExponentialBackoff()
    delay = backoff_strategy.calculate(attempt)

    if jitter_factor > 0:
        jitter = random.uniform(0, jitter_factor) * delay  # noqa: S311
        total_delay = delay + jitter
    else:
        jitter = 0.0
        total_delay = delay

    if max_delay is not None and total_delay > max_delay:
        logger.debug(f"Capping delay from {total_delay:.2f}s to {max_delay:.2f}s")
        total_delay = max_delay

    logger.debug(f"Waiting {total_delay:.2f}s before retry (base={delay:.2f}s, jitter={jitter:.2f}s)")
    return total_delay
