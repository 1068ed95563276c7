r"""resilink - Resilience layer for calls to flaky remote backends.

This package makes async calls to remote backends (document stores,
health-data stores, HTTP APIs) resilient to transient failures. Every
failure is classified into a closed error taxonomy that drives both the
automatic retries and the retry affordance offered to the user.

Key Features:
    - Retry executor with capped exponential backoff and jitter
    - Per-service circuit breakers with a single HALF_OPEN trial call
    - Deduplication of concurrent identical requests
    - Durable offline queue replayed when connectivity returns
    - Error classifier mapping any failure to one of 13 error kinds
    - Error reporter publishing the current error with its presentation
    - Push-based connectivity monitor with an optional HTTP probe
    - Async HTTP client on top of httpx
    - Callback/Event system for observability and structured logging

Example:
    ```pycon
    >>> import asyncio
    >>> from resilink import ResilienceService
    >>> service = ResilienceService()
    >>> async def load_feed():
    ...     return ["post-1", "post-2"]
    ...
    >>> asyncio.run(service.execute(load_feed, "loadFeed", service="feed"))
    ['post-1', 'post-2']
    >>> from resilink import AsyncResilientClient
    >>> async def main():  # doctest: +SKIP
    ...     async with AsyncResilientClient(base_url="https://api.example.com") as client:
    ...         return await client.get("/feed")
    ...
    >>> asyncio.run(main())  # doctest: +SKIP

    ```
"""

from __future__ import annotations

__all__ = [
    "AppError",
    "AsyncResilientClient",
    "AsyncRetryExecutor",
    "CancellationToken",
    "CircuitBreaker",
    "CircuitBreakerError",
    "CircuitBreakerRegistry",
    "CircuitState",
    "ConfigurationError",
    "ConnectivityMonitor",
    "ErrorClassifier",
    "ErrorKind",
    "ErrorPresentation",
    "ErrorReporter",
    "HttpProbe",
    "JsonFileQueueStorage",
    "NetworkError",
    "NetworkErrorCode",
    "OfflineQueue",
    "QueuedOperation",
    "RequestDeduplicator",
    "ResilienceConfig",
    "ResilienceService",
    "RetryConfig",
    "__version__",
    "classify",
    "should_retry",
]

from importlib.metadata import PackageNotFoundError, version

from resilink.cancellation import CancellationToken
from resilink.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry, CircuitState
from resilink.classifier import (
    ErrorClassifier,
    NetworkError,
    NetworkErrorCode,
    classify,
    should_retry,
)
from resilink.client_async import AsyncResilientClient
from resilink.config import ResilienceConfig
from resilink.connectivity import ConnectivityMonitor, HttpProbe
from resilink.dedup import RequestDeduplicator
from resilink.errors import AppError, CircuitBreakerError, ConfigurationError, ErrorKind
from resilink.offline_queue import JsonFileQueueStorage, OfflineQueue, QueuedOperation
from resilink.reporter import ErrorPresentation, ErrorReporter
from resilink.retry import AsyncRetryExecutor, RetryConfig
from resilink.service import ResilienceService

try:
    __version__ = version(__name__)
except PackageNotFoundError:  # pragma: no cover
    # Package is not installed, fallback if needed
    __version__ = "0.0.0"
