r"""Retry package implementing class-based composition pattern.

Public API:
    - RetryConfig: Configuration for retry behavior
    - RetryStrategy: Strategy for calculating retry delays
    - RetryStateStore: Per-context consecutive failure counters
    - CallbackManager: Manager for callback invocations
    - AsyncRetryExecutor: Asynchronous retry executor
"""

from __future__ import annotations

__all__ = [
    "AsyncRetryExecutor",
    "CallbackManager",
    "RetryConfig",
    "RetryStateStore",
    "RetryStrategy",
]

from resilink.retry.config import RetryConfig
from resilink.retry.executor import AsyncRetryExecutor
from resilink.retry.manager import CallbackManager
from resilink.retry.state import RetryStateStore
from resilink.retry.strategy import RetryStrategy
