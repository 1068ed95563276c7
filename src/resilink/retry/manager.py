r"""Callback manager for retry lifecycle events."""

from __future__ import annotations

__all__ = ["CallbackManager"]

import time
from typing import TYPE_CHECKING

from resilink.callbacks import FailureInfo, RetryInfo, SuccessInfo

if TYPE_CHECKING:
    from resilink.errors import AppError
    from resilink.retry.config import RetryConfig


class CallbackManager:
    """Invokes the user-defined callbacks of a ``RetryConfig``.

    Attempt numbers are received 0-indexed and passed to the callbacks
    1-indexed.

    Attributes:
        config: The retry configuration holding the callbacks.
    """

    def __init__(self, config: RetryConfig) -> None:
        self.config = config

    def on_retry(
        self,
        context: str,
        attempt: int,
        max_attempts: int,
        wait_time: float,
        error: AppError,
    ) -> None:
        """Invoke on_retry callback.

        Args:
            context: The operation context.
            attempt: Index of the attempt that just failed (0-indexed).
            max_attempts: Total number of attempts allowed.
            wait_time: Backoff delay before the next attempt.
            error: The classified error that triggered the retry.
        """
        if self.config.on_retry is not None:
            self.config.on_retry(
                RetryInfo(
                    context=context,
                    attempt=attempt + 2,
                    max_attempts=max_attempts,
                    wait_time=wait_time,
                    error=error,
                )
            )

    def on_success(self, context: str, attempt: int, max_attempts: int, start_time: float) -> None:
        if self.config.on_success is not None:
            self.config.on_success(
                SuccessInfo(
                    context=context,
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                    total_time=time.time() - start_time,
                )
            )

    def on_failure(
        self,
        context: str,
        attempt: int,
        max_attempts: int,
        error: AppError,
        start_time: float,
    ) -> None:
        if self.config.on_failure is not None:
            self.config.on_failure(
                FailureInfo(
                    context=context,
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                    error=error,
                    total_time=time.time() - start_time,
                )
            )
