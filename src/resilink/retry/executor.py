r"""Asynchronous retry executor.

This module provides the ``AsyncRetryExecutor`` class that runs async
operations with automatic retry logic, error classification and circuit
breaker integration.
"""

from __future__ import annotations

__all__ = ["AsyncRetryExecutor"]

import logging
import time
from typing import TYPE_CHECKING, TypeVar

from resilink.cancellation import run_cancellable, sleep
from resilink.classifier import ErrorClassifier
from resilink.errors import AppError
from resilink.retry.config import RetryConfig
from resilink.retry.manager import CallbackManager
from resilink.retry.state import RetryStateStore
from resilink.retry.strategy import RetryStrategy
from resilink.utils.structured_logging import operation_context
from resilink.utils.validation import validate_retry_params

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from resilink.cancellation import CancellationToken
    from resilink.circuit_breaker import CircuitBreakerRegistry

T = TypeVar("T")

logger: logging.Logger = logging.getLogger(__name__)


class AsyncRetryExecutor:
    """Executes async operations with automatic retry logic.

    The executor orchestrates the following components:
    - RetryStrategy: Calculates backoff delays between attempts
    - ErrorClassifier: Turns failures into ``AppError`` and decides
      retryability
    - CallbackManager: Invokes user-defined callbacks at lifecycle events
    - RetryStateStore: Tracks consecutive failures per operation context
    - CircuitBreakerRegistry: Optional fail-fast protection per service

    Attributes:
        config: Retry configuration.
        strategy: Strategy for calculating retry delays.
        classifier: Classifier for raw failures.
        callbacks: Manager for invoking callbacks.
        state: Per-context retry counters.
        circuit_breakers: Optional registry of per-service breakers.

    Example:
        ```pycon
        >>> import asyncio
        >>> from resilink.retry import AsyncRetryExecutor, RetryConfig
        >>> executor = AsyncRetryExecutor(RetryConfig(max_attempts=3))
        >>> async def load_feed():
        ...     return ["post-1"]
        ...
        >>> asyncio.run(executor.execute(load_feed, "loadFeed"))
        ['post-1']

        ```
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        classifier: ErrorClassifier | None = None,
        state: RetryStateStore | None = None,
        circuit_breakers: CircuitBreakerRegistry | None = None,
    ) -> None:
        self.config = config if config is not None else RetryConfig()
        self.strategy: RetryStrategy = RetryStrategy(
            jitter_factor=self.config.jitter_factor,
            backoff_strategy=self.config.backoff_strategy,
            max_delay=self.config.max_delay,
        )
        self.classifier = classifier if classifier is not None else ErrorClassifier()
        self.callbacks: CallbackManager = CallbackManager(self.config)
        self.state = state if state is not None else RetryStateStore()
        self.circuit_breakers = circuit_breakers

    def __repr__(self) -> str:
        return f"{type(self).__name__}(max_attempts={self.config.max_attempts})"

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        context: str,
        *,
        retry_if: Callable[[AppError], bool] | None = None,
        service: str | None = None,
        max_attempts: int | None = None,
        token: CancellationToken | None = None,
    ) -> T:
        """Execute an async operation with automatic retry logic.

        Makes at most ``max_attempts`` attempts. Each failure is
        classified; non-retryable errors are raised immediately, and
        retryable ones are retried after a backoff sleep. Attempts for
        one context are strictly sequential.

        Circuit breaker integration:
        - The breaker of ``service`` is checked before every attempt
        - An open circuit raises ``CircuitBreakerError`` without retrying
        - Every attempt outcome is recorded on the breaker

        Args:
            operation: Zero-argument callable returning a fresh awaitable
                for each attempt.
            context: The operation context, e.g. ``"loadFeed"``. Scopes
                the retry counter and appears in error messages.
            retry_if: Optional predicate deciding whether a classified
                error is retried. Defaults to
                ``ErrorClassifier.should_retry``.
            service: Optional service key for circuit breaker integration.
            max_attempts: Optional override of ``config.max_attempts``.
            token: Optional cancellation token interrupting attempts and
                backoff sleeps.

        Returns:
            The result of the first successful attempt.

        Raises:
            ConfigurationError: If ``max_attempts`` is not >= 1.
            CircuitBreakerError: If the circuit of ``service`` is open.
            AppError: The classified error if it is not retryable, or an
                error of kind ``MAX_RETRIES_EXCEEDED`` chained to the
                last error when all attempts failed.
            asyncio.CancelledError: If the call or the token is
                cancelled.
        """
        attempts = max_attempts if max_attempts is not None else self.config.max_attempts
        validate_retry_params(max_attempts=attempts)
        predicate = retry_if if retry_if is not None else self.classifier.should_retry
        breaker = (
            self.circuit_breakers.get(service)
            if service is not None and self.circuit_breakers is not None
            else None
        )

        start_time = time.time()
        last_error: AppError | None = None

        with operation_context(context):
            for attempt in range(attempts):
                if token is not None:
                    token.raise_if_cancelled()
                ticket = breaker.check() if breaker is not None else None

                try:
                    result = await run_cancellable(operation(), token)
                except Exception as exc:
                    error = self.classifier.classify(exc, context)
                    last_error = error
                    if breaker is not None:
                        breaker.record_failure(ticket)
                    count = self.state.record_failure(context, cap=attempts)
                    logger.debug(
                        f"Attempt {attempt + 1}/{attempts} for {context} failed "
                        f"({error.type}, consecutive failures: {count})"
                    )

                    if not predicate(error):
                        self.callbacks.on_failure(context, attempt, attempts, error, start_time)
                        if error is exc:
                            raise
                        raise error from exc

                    if attempt == attempts - 1:
                        break

                    delay = self.strategy.calculate_delay(attempt)
                    self.callbacks.on_retry(context, attempt, attempts, delay, error)
                    logger.debug(f"Retry attempt {attempt + 1} for {context} after {delay:.2f}s delay")
                    await sleep(delay, token)
                    continue
                except BaseException:
                    if breaker is not None:
                        breaker.release(ticket)
                    raise

                if breaker is not None:
                    breaker.record_success(ticket)
                self.state.reset(context)
                self.callbacks.on_success(context, attempt, attempts, start_time)
                return result

        # All attempts failed with retryable errors
        message = f"Max retries exceeded for {context}"
        if last_error is not None:
            message = f"{message}: {last_error.message}"
        error = AppError.max_retries_exceeded(message, context=context)
        logger.warning(f"{message} ({attempts} attempts)")
        self.callbacks.on_failure(context, attempts - 1, attempts, error, start_time)
        raise error from last_error
