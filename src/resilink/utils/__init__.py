r"""Utility functions shared by the resilience components."""

from __future__ import annotations

__all__ = [
    "Observable",
    "calculate_delay",
    "validate_circuit_params",
    "validate_retry_params",
    "validate_timeout",
]

from resilink.utils.delay import calculate_delay
from resilink.utils.observable import Observable
from resilink.utils.validation import (
    validate_circuit_params,
    validate_retry_params,
    validate_timeout,
)
