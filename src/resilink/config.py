r"""Configuration dataclass and defaults for the resilience layer.

This module provides the default constants and the ``ResilienceConfig``
dataclass consumed by ``ResilienceService`` and
``AsyncResilientClient``.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_BASE_DELAY",
    "DEFAULT_FAILURE_THRESHOLD",
    "DEFAULT_JITTER_FACTOR",
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_MAX_DELAY",
    "DEFAULT_RECOVERY_TIMEOUT",
    "DEFAULT_STORAGE_KEY",
    "DEFAULT_TIMEOUT",
    "ResilienceConfig",
]

from dataclasses import dataclass, fields, replace
from typing import TYPE_CHECKING, Any

from resilink.utils.validation import validate_circuit_params, validate_retry_params

if TYPE_CHECKING:
    from collections.abc import Callable

    from resilink.backoff import BaseBackoffStrategy
    from resilink.callbacks import FailureInfo, RetryInfo, SuccessInfo


# Default timeout in seconds for HTTP requests
DEFAULT_TIMEOUT = 10.0

# Total attempts per call, the first one included
DEFAULT_MAX_ATTEMPTS = 3

# Backoff delay = min(base_delay * 2 ** attempt, max_delay) + jitter
# With the defaults: 1s, 2s, 4s, 8s, 16s, 30s, 30s, ...
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 30.0

# Up to 10% of the delay is added as random jitter
DEFAULT_JITTER_FACTOR = 0.1

# Consecutive failures before a service circuit opens
DEFAULT_FAILURE_THRESHOLD = 5

# Seconds an open circuit waits before allowing a trial call
DEFAULT_RECOVERY_TIMEOUT = 30.0

# Key under which the offline queue is persisted
DEFAULT_STORAGE_KEY = "queued_operations"


@dataclass
class ResilienceConfig:
    """Configuration for the resilience layer.

    Args:
        max_attempts: Total attempts per call. Must be >= 1.
        base_delay: Base delay of the exponential backoff in seconds.
        max_delay: Maximum delay between two attempts in seconds.
        jitter_factor: Factor for random jitter added to delays.
        backoff_strategy: Optional custom backoff strategy. When set,
            ``base_delay`` is ignored.
        failure_threshold: Consecutive failures before a circuit opens.
        recovery_timeout: Seconds before an open circuit allows a trial.
        storage_key: Key under which the offline queue is persisted.
        report_errors: Whether terminal errors are published on the
            error reporter.
        on_retry: Optional callback called before each backoff sleep.
        on_success: Optional callback called when an operation succeeds.
        on_failure: Optional callback called on terminal failure.

    Example:
        ```pycon
        >>> from resilink.config import ResilienceConfig
        >>> config = ResilienceConfig()
        >>> config.max_attempts
        3
        >>> merged = config.merge(max_attempts=5, max_delay=None)
        >>> merged.max_attempts, merged.max_delay
        (5, 30.0)

        ```
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    jitter_factor: float = DEFAULT_JITTER_FACTOR
    backoff_strategy: BaseBackoffStrategy | None = None
    failure_threshold: int = DEFAULT_FAILURE_THRESHOLD
    recovery_timeout: float = DEFAULT_RECOVERY_TIMEOUT
    storage_key: str = DEFAULT_STORAGE_KEY
    report_errors: bool = False
    on_retry: Callable[[RetryInfo], None] | None = None
    on_success: Callable[[SuccessInfo], None] | None = None
    on_failure: Callable[[FailureInfo], None] | None = None

    def __post_init__(self) -> None:
        """Validate configuration parameters after initialization.

        Raises:
            ConfigurationError: If any parameter fails validation.
        """
        validate_retry_params(
            max_attempts=self.max_attempts,
            jitter_factor=self.jitter_factor,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
        )
        validate_circuit_params(
            failure_threshold=self.failure_threshold,
            recovery_timeout=self.recovery_timeout,
        )

    def merge(self, **overrides: Any) -> ResilienceConfig:
        """Create a new config with the given parameters overridden.

        Only non-None override values are applied.

        Args:
            **overrides: Parameters to override.

        Returns:
            A new validated ``ResilienceConfig``.

        Raises:
            TypeError: If an override names an unknown parameter.
        """
        names = {f.name for f in fields(self)}
        unknown = set(overrides) - names
        if unknown:
            msg = f"Unknown configuration parameters: {sorted(unknown)}"
            raise TypeError(msg)
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
