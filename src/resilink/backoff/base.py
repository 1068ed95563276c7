r"""Define the interface shared by the backoff strategies of the retry
executor."""

from __future__ import annotations

__all__ = ["BaseBackoffStrategy"]

from abc import ABC, abstractmethod


class BaseBackoffStrategy(ABC):
    """Base class of the pluggable backoff strategies.

    A strategy maps the index of a failed attempt to the base delay
    the retry executor sleeps before the next attempt. Jitter and the
    ``max_delay`` cap are added on top by
    ``resilink.utils.delay.calculate_delay``, so implementations return
    the raw schedule only.
    """

    @abstractmethod
    def calculate(self, attempt: int) -> float:
        """Return the base delay after a failed attempt.

        Args:
            attempt: The 0-indexed attempt that just failed. With the
                default ``ExponentialBackoff(1.0, 30.0)`` the schedule
                is 1s after attempt 0, 2s after attempt 1, 4s after
                attempt 2.

        Returns:
            The non-negative base delay in seconds.
        """
