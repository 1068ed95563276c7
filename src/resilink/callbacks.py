r"""Callback types for retry lifecycle observability.

The retry executor invokes three optional hooks:

- on_retry: Called before each backoff sleep
- on_success: Called when an operation succeeds
- on_failure: Called when an operation fails terminally (non-retryable
  error or retries exhausted)

Example:
    ```pycon
    >>> from resilink.callbacks import RetryInfo
    >>> from resilink.retry import RetryConfig
    >>> def log_retry(info: RetryInfo) -> None:
    ...     print(f"{info.context}: attempt {info.attempt}/{info.max_attempts}")
    ...
    >>> config = RetryConfig(on_retry=log_retry)

    ```
"""

from __future__ import annotations

__all__ = ["FailureInfo", "RetryInfo", "SuccessInfo"]

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from resilink.errors import AppError


@dataclass(frozen=True)
class RetryInfo:
    """Information passed to on_retry callback.

    Attributes:
        context: The operation context.
        attempt: The attempt about to be made (1-indexed). The first
            retry is attempt 2.
        max_attempts: Total number of attempts allowed.
        wait_time: The backoff delay in seconds before this attempt.
        error: The classified error that triggered the retry.
    """

    context: str
    attempt: int
    max_attempts: int
    wait_time: float
    error: AppError


@dataclass(frozen=True)
class SuccessInfo:
    """Information passed to on_success callback.

    Attributes:
        context: The operation context.
        attempt: The attempt that succeeded (1-indexed).
        max_attempts: Total number of attempts allowed.
        total_time: Seconds spent on all attempts, backoff included.
    """

    context: str
    attempt: int
    max_attempts: int
    total_time: float


@dataclass(frozen=True)
class FailureInfo:
    """Information passed to on_failure callback.

    Attributes:
        context: The operation context.
        attempt: The final attempt (1-indexed).
        max_attempts: Total number of attempts allowed.
        error: The terminal error raised to the caller.
        total_time: Seconds spent on all attempts, backoff included.
    """

    context: str
    attempt: int
    max_attempts: int
    error: AppError
    total_time: float
