r"""Exponential backoff strategy."""

from __future__ import annotations

__all__ = ["ExponentialBackoff"]

from resilink.backoff.base import BaseBackoffStrategy
from resilink.errors import ConfigurationError


class ExponentialBackoff(BaseBackoffStrategy):
    """Exponential backoff strategy.

    Calculates delay as: min(base_delay * (2 ** attempt), max_delay).

    This is the default strategy of the retry executor: 1s after the
    first failure, 2s after the second, 4s after the third, and so on
    until the 30s cap.

    Args:
        base_delay: The base delay in seconds (default: 1.0).
        max_delay: Optional maximum delay cap in seconds (default: 30.0).
            ``None`` disables the cap.

    Example:
        ```pycon
        >>> from resilink.backoff import ExponentialBackoff
        >>> backoff = ExponentialBackoff()
        >>> backoff.calculate(0)
        1.0
        >>> backoff.calculate(3)
        8.0
        >>> backoff.calculate(10)  # Would be 1024.0, but capped
        30.0

        ```
    """

    def __init__(self, base_delay: float = 1.0, max_delay: float | None = 30.0) -> None:
        if base_delay < 0:
            msg = f"base_delay must be non-negative, got {base_delay}"
            raise ConfigurationError(msg)
        if max_delay is not None and max_delay <= 0:
            msg = f"max_delay must be positive if specified, got {max_delay}"
            raise ConfigurationError(msg)

        self.base_delay = base_delay
        self.max_delay = max_delay

    def __repr__(self) -> str:
        return f"{type(self).__name__}(base_delay={self.base_delay}, max_delay={self.max_delay})"

    def calculate(self, attempt: int) -> float:
        delay = self.base_delay * (2**attempt)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay
