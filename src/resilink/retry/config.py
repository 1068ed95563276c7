r"""Configuration dataclass for retry behavior."""

from __future__ import annotations

__all__ = ["RetryConfig"]

from dataclasses import dataclass
from typing import TYPE_CHECKING

from resilink.config import DEFAULT_JITTER_FACTOR, DEFAULT_MAX_ATTEMPTS, DEFAULT_MAX_DELAY
from resilink.utils.validation import validate_retry_params

if TYPE_CHECKING:
    from collections.abc import Callable

    from resilink.backoff.base import BaseBackoffStrategy
    from resilink.callbacks import FailureInfo, RetryInfo, SuccessInfo


@dataclass
class RetryConfig:
    """Configuration for the retry executor.

    Attributes:
        max_attempts: Total number of attempts, the first one included.
        jitter_factor: Factor for adding random jitter to backoff delays.
        backoff_strategy: Optional backoff strategy. Defaults to
            ``ExponentialBackoff()`` (base 1s, cap 30s).
        max_delay: Optional cap on each delay, jitter included.
        on_retry: Optional callback invoked before each backoff sleep.
        on_success: Optional callback invoked when the operation succeeds.
        on_failure: Optional callback invoked on terminal failure.

    Raises:
        ConfigurationError: If max_attempts < 1 or another parameter is
            out of range.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    jitter_factor: float = DEFAULT_JITTER_FACTOR
    backoff_strategy: BaseBackoffStrategy | None = None
    max_delay: float | None = DEFAULT_MAX_DELAY
    on_retry: Callable[[RetryInfo], None] | None = None
    on_success: Callable[[SuccessInfo], None] | None = None
    on_failure: Callable[[FailureInfo], None] | None = None

    def __post_init__(self) -> None:
        validate_retry_params(
            max_attempts=self.max_attempts,
            jitter_factor=self.jitter_factor,
            max_delay=self.max_delay,
        )
