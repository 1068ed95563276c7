r"""Facade composing the resilience components.

``ResilienceService.execute`` is the generic resilient entry point:

1. With a ``dedup_key``, concurrent identical calls share one execution.
2. The retry executor runs the operation, consulting the circuit breaker
   of ``service`` before every attempt.
3. On terminal failure while offline, an operation declared with
   ``queue_as`` is appended to the offline queue. The error is still
   raised.
4. With ``report_errors`` enabled, the terminal error is published on
   the error reporter together with an action re-running the call.

Example:
    ```pycon
    >>> import asyncio
    >>> from resilink import ResilienceConfig, ResilienceService
    >>> service = ResilienceService(ResilienceConfig(max_attempts=2))
    >>> async def load_feed():
    ...     return ["post-1"]
    ...
    >>> asyncio.run(service.execute(load_feed, "loadFeed", service="feed", dedup_key="feed"))
    ['post-1']

    ```
"""

from __future__ import annotations

__all__ = ["ResilienceService"]

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from resilink.backoff import ExponentialBackoff
from resilink.circuit_breaker import CircuitBreakerRegistry
from resilink.classifier import ErrorClassifier
from resilink.config import ResilienceConfig
from resilink.connectivity import ConnectivityMonitor
from resilink.dedup import RequestDeduplicator
from resilink.errors import AppError
from resilink.offline_queue import InMemoryQueueStorage, JsonFileQueueStorage, OfflineQueue
from resilink.reporter import ErrorReporter
from resilink.retry import AsyncRetryExecutor, RetryConfig, RetryStateStore

if TYPE_CHECKING:
    import os
    from collections.abc import Awaitable, Callable

    from resilink.cancellation import CancellationToken
    from resilink.offline_queue import QueuedOperation, QueueStorage

T = TypeVar("T")

logger: logging.Logger = logging.getLogger(__name__)


def build_retry_config(config: ResilienceConfig) -> RetryConfig:
    """Build the retry executor configuration from a
    ``ResilienceConfig``.

    Args:
        config: The resilience configuration.

    Returns:
        The retry configuration. Without a custom backoff strategy, an
        ``ExponentialBackoff`` is built from ``base_delay`` and
        ``max_delay``.
    """
    backoff = config.backoff_strategy
    if backoff is None:
        backoff = ExponentialBackoff(base_delay=config.base_delay, max_delay=config.max_delay)
    return RetryConfig(
        max_attempts=config.max_attempts,
        jitter_factor=config.jitter_factor,
        backoff_strategy=backoff,
        max_delay=config.max_delay,
        on_retry=config.on_retry,
        on_success=config.on_success,
        on_failure=config.on_failure,
    )


class ResilienceService:
    r"""Resilient execution of calls to remote backends.

    All collaborators can be injected; the missing ones are created
    from ``config``. Each service instance owns its state, so two
    instances never share retry counters or circuit breakers.

    Args:
        config: The resilience configuration. Defaults to
            ``ResilienceConfig()``.
        monitor: Connectivity monitor. Defaults to a monitor without
            probe that reports online until told otherwise.
        queue: Offline queue. Defaults to a queue on ``storage``
            subscribed to ``monitor``.
        storage: Storage of the default queue. Ignored when ``queue`` is
            given.
        storage_path: Path of a JSON document used as storage of the
            default queue, under ``config.storage_key``. Ignored when
            ``queue`` or ``storage`` is given.
        reporter: Error reporter. Defaults to a reporter mirroring
            ``monitor``.
        classifier: Error classifier shared by all components.
        circuit_breakers: Circuit breaker registry.
        deduplicator: Request deduplicator.
        retry_state: Per-context retry counters.
    """

    def __init__(
        self,
        config: ResilienceConfig | None = None,
        *,
        monitor: ConnectivityMonitor | None = None,
        queue: OfflineQueue | None = None,
        storage: QueueStorage | None = None,
        storage_path: str | os.PathLike[str] | None = None,
        reporter: ErrorReporter | None = None,
        classifier: ErrorClassifier | None = None,
        circuit_breakers: CircuitBreakerRegistry | None = None,
        deduplicator: RequestDeduplicator | None = None,
        retry_state: RetryStateStore | None = None,
    ) -> None:
        self.config = config if config is not None else ResilienceConfig()
        self.monitor = monitor if monitor is not None else ConnectivityMonitor()
        self.classifier = (
            classifier
            if classifier is not None
            else ErrorClassifier(is_network_available=lambda: self.monitor.is_available)
        )
        self.circuit_breakers = (
            circuit_breakers
            if circuit_breakers is not None
            else CircuitBreakerRegistry(
                failure_threshold=self.config.failure_threshold,
                recovery_timeout=self.config.recovery_timeout,
                classifier=self.classifier,
            )
        )
        self.executor = AsyncRetryExecutor(
            build_retry_config(self.config),
            classifier=self.classifier,
            state=retry_state,
            circuit_breakers=self.circuit_breakers,
        )
        self.deduplicator = deduplicator if deduplicator is not None else RequestDeduplicator()
        if queue is None:
            if storage is None:
                storage = (
                    JsonFileQueueStorage(storage_path, key=self.config.storage_key)
                    if storage_path is not None
                    else InMemoryQueueStorage()
                )
            queue = OfflineQueue(storage, monitor=self.monitor)
        self.queue = queue
        self.reporter = (
            reporter
            if reporter is not None
            else ErrorReporter(classifier=self.classifier, monitor=self.monitor)
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(max_attempts={self.config.max_attempts}, "
            f"queued={len(self.queue)}, online={self.is_network_available})"
        )

    @property
    def is_network_available(self) -> bool:
        return self.monitor.is_available

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        context: str,
        *,
        service: str | None = None,
        dedup_key: str | None = None,
        result_type: type[T] | None = None,
        retry_if: Callable[[AppError], bool] | None = None,
        max_attempts: int | None = None,
        queue_as: tuple[str, dict[str, Any]] | None = None,
        token: CancellationToken | None = None,
    ) -> T:
        """Run ``operation`` with deduplication, retries, circuit
        breaking, offline queueing and error reporting.

        Args:
            operation: Zero-argument callable returning a fresh awaitable
                for each attempt.
            context: The operation context, e.g. ``"likePost:123"``.
            service: Optional service key of the circuit breaker.
            dedup_key: Optional key collapsing concurrent identical calls.
            result_type: Optional expected result type, checked by the
                deduplicator.
            retry_if: Optional predicate overriding the default
                retryability decision.
            max_attempts: Optional override of ``config.max_attempts``.
            queue_as: Optional ``(type, payload)`` queued when the call
                fails while offline.
            token: Optional cancellation token.

        Returns:
            The result of the operation.

        Raises:
            AppError: The terminal classified error.
            ConfigurationError: If ``max_attempts`` is not >= 1.
            TypeError: On a deduplicated result type mismatch.
            asyncio.CancelledError: If the call is cancelled.
        """

        async def attempt_all(inner_token: CancellationToken | None = None) -> T:
            return await self.executor.execute(
                operation,
                context,
                retry_if=retry_if,
                service=service,
                max_attempts=max_attempts,
                token=inner_token,
            )

        try:
            if dedup_key is not None:
                # The shared execution must outlive the token of the
                # caller that started it
                return await self.deduplicator.execute(
                    dedup_key, attempt_all, result_type=result_type, token=token
                )
            return await attempt_all(token)
        except AppError as error:
            self._handle_terminal_error(error, context, queue_as)
            if self.config.report_errors:

                async def retry_action() -> T:
                    return await self.execute(
                        operation,
                        context,
                        service=service,
                        dedup_key=dedup_key,
                        result_type=result_type,
                        retry_if=retry_if,
                        max_attempts=max_attempts,
                        queue_as=queue_as,
                    )

                self.reporter.report(error, context, retry_action=retry_action)
            raise

    def _handle_terminal_error(
        self,
        error: AppError,
        context: str,
        queue_as: tuple[str, dict[str, Any]] | None,
    ) -> None:
        if queue_as is None or self.is_network_available:
            return
        type_, payload = queue_as
        try:
            self.queue.enqueue(type_, payload)
        except AppError as exc:
            logger.warning(f"Failed to queue {type_} operation for '{context}': {exc}")
            return
        logger.info(f"Queued {type_} operation for '{context}' after {error.type} error while offline")

    def enqueue(self, type: str, payload: dict[str, Any]) -> QueuedOperation:
        """Defer an operation until connectivity returns.

        Args:
            type: The operation type tag.
            payload: JSON-compatible payload for the handler.

        Returns:
            The queued operation.
        """
        return self.queue.enqueue(type, payload)

    def register_handler(
        self, type: str, handler: Callable[[QueuedOperation], Awaitable[Any]]
    ) -> None:
        """Register the replay handler of an offline operation type."""
        self.queue.register_handler(type, handler)

    async def start(self) -> None:
        """Start the connectivity monitor if it has a probe."""
        if self.monitor.has_probe:
            await self.monitor.start()

    async def close(self) -> None:
        """Stop the connectivity monitor and wait for a running drain."""
        await self.monitor.stop()
        await self.queue.wait_idle()
        self.queue.close()
