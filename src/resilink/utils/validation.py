r"""Parameter validation utilities for the resilience components.

This module provides validation functions that reject invalid retry,
circuit breaker and timeout parameters before any operation runs.
"""

from __future__ import annotations

__all__ = ["validate_circuit_params", "validate_retry_params", "validate_timeout"]

from typing import TYPE_CHECKING

from resilink.errors import ConfigurationError

if TYPE_CHECKING:
    import httpx


def validate_timeout(timeout: float | httpx.Timeout) -> None:
    """Validate timeout parameter.

    Args:
        timeout: Maximum seconds to wait for server responses.
            Must be > 0 if provided as a numeric value.

    Raises:
        ConfigurationError: If timeout is a numeric value <= 0.

    Example:
        ```pycon
        >>> from resilink.utils.validation import validate_timeout
        >>> validate_timeout(10.0)
        >>> validate_timeout(0)
        Traceback (most recent call last):
        ...
        resilink.errors.ConfigurationError: timeout must be > 0, got 0

        ```
    """
    if isinstance(timeout, (int, float)) and timeout <= 0:
        msg = f"timeout must be > 0, got {timeout}"
        raise ConfigurationError(msg)


def validate_retry_params(
    max_attempts: int,
    jitter_factor: float = 0.0,
    base_delay: float = 0.0,
    max_delay: float | None = None,
) -> None:
    """Validate retry parameters.

    Args:
        max_attempts: Total number of attempts, including the first one.
            Must be >= 1.
        jitter_factor: Factor for adding random jitter to backoff delays.
            Must be >= 0.
        base_delay: Base backoff delay in seconds. Must be >= 0.
        max_delay: Maximum backoff delay in seconds. Must be > 0 if
            provided.

    Raises:
        ConfigurationError: If any parameter is out of range.

    Example:
        ```pycon
        >>> from resilink.utils.validation import validate_retry_params
        >>> validate_retry_params(max_attempts=3, jitter_factor=0.1)
        >>> validate_retry_params(max_attempts=0)
        Traceback (most recent call last):
        ...
        resilink.errors.ConfigurationError: max_attempts must be >= 1, got 0

        ```
    """
    if max_attempts < 1:
        msg = f"max_attempts must be >= 1, got {max_attempts}"
        raise ConfigurationError(msg)
    if jitter_factor < 0:
        msg = f"jitter_factor must be >= 0, got {jitter_factor}"
        raise ConfigurationError(msg)
    if base_delay < 0:
        msg = f"base_delay must be >= 0, got {base_delay}"
        raise ConfigurationError(msg)
    if max_delay is not None and max_delay <= 0:
        msg = f"max_delay must be > 0, got {max_delay}"
        raise ConfigurationError(msg)


def validate_circuit_params(failure_threshold: int, recovery_timeout: float) -> None:
    """Validate circuit breaker parameters.

    Args:
        failure_threshold: Consecutive failures before opening. Must be > 0.
        recovery_timeout: Cooldown in seconds before a trial call.
            Must be > 0.

    Raises:
        ConfigurationError: If any parameter is out of range.
    """
    if failure_threshold <= 0:
        msg = f"failure_threshold must be > 0, got {failure_threshold}"
        raise ConfigurationError(msg)
    if recovery_timeout <= 0:
        msg = f"recovery_timeout must be > 0, got {recovery_timeout}"
        raise ConfigurationError(msg)
