r"""Fixed-delay backoff for services with a known recovery time."""

from __future__ import annotations

__all__ = ["ConstantBackoff"]

from resilink.backoff.base import BaseBackoffStrategy
from resilink.errors import ConfigurationError


class ConstantBackoff(BaseBackoffStrategy):
    """Sleep the same base delay between every pair of attempts.

    ``ConstantBackoff(0.0)`` makes the retry executor retry without
    waiting, which keeps executor tests fast.

    Args:
        delay: The base delay in seconds. Must be >= 0. Default is 1.0.

    Raises:
        ConfigurationError: If ``delay`` is negative.

    Example:
        ```pycon
        >>> from resilink.backoff import ConstantBackoff
        >>> ConstantBackoff(delay=2.5).calculate(7)
        2.5

        ```
    """

    def __init__(self, delay: float = 1.0) -> None:
        if delay < 0:
            msg = f"delay must be non-negative, got {delay}"
            raise ConfigurationError(msg)
        self.delay = delay

    def __repr__(self) -> str:
        return f"{type(self).__name__}(delay={self.delay})"

    def calculate(self, attempt: int) -> float:  # noqa: ARG002
        return self.delay
