r"""Circuit Breaker Pattern implementation for preventing cascading
failures.

One ``CircuitBreaker`` guards one service key. It has three states:

- CLOSED: Normal operation, calls go through
- OPEN: After N consecutive failures, calls fail fast without being attempted
- HALF_OPEN: After the cooldown, exactly one trial call checks if the service
  recovered

``CircuitBreakerRegistry`` owns the breakers of all service keys and
provides ``execute(operation, service)``.

Example:
    ```pycon
    >>> import asyncio
    >>> from resilink.circuit_breaker import CircuitBreakerRegistry
    >>> registry = CircuitBreakerRegistry(failure_threshold=5, recovery_timeout=30.0)
    >>> async def load_feed():
    ...     return ["post-1", "post-2"]
    ...
    >>> asyncio.run(registry.execute(load_feed, "feed"))
    ['post-1', 'post-2']

    ```
"""

from __future__ import annotations

__all__ = ["CircuitBreaker", "CircuitBreakerRegistry", "CircuitState"]

import logging
import threading
import time
from enum import Enum
from typing import TYPE_CHECKING, TypeVar

from resilink.classifier import ErrorClassifier
from resilink.config import DEFAULT_FAILURE_THRESHOLD, DEFAULT_RECOVERY_TIMEOUT
from resilink.errors import CircuitBreakerError
from resilink.utils.validation import validate_circuit_params

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger: logging.Logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states.

    Attributes:
        CLOSED: Normal operation, calls are allowed.
        OPEN: Circuit is open, calls fail fast without being attempted.
        HALF_OPEN: Testing if the service recovered, allows one trial call.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    r"""Circuit breaker guarding a single service.

    Thread-safe implementation using a lock. No method awaits while
    holding it.

    Args:
        service: The name of the protected service, used in error
            messages.
        failure_threshold: Number of consecutive failures before opening
            the circuit. Must be > 0. Default is 5.
        recovery_timeout: Time in seconds to wait in OPEN state before
            allowing a trial call. Must be > 0. Default is 30.0 seconds.
        on_state_change: Optional callback function called when circuit
            state changes. Receives (service, old_state, new_state).

    Raises:
        ConfigurationError: If failure_threshold or recovery_timeout are
            invalid.

    Example:
        ```pycon
        >>> from resilink.circuit_breaker import CircuitBreaker
        >>> cb = CircuitBreaker("feed")
        >>> cb.state
        <CircuitState.CLOSED: 'closed'>
        >>> for _ in range(5):
        ...     cb.record_failure()
        ...
        >>> cb.state
        <CircuitState.OPEN: 'open'>
        >>> cb.check()
        Traceback (most recent call last):
            ...
        resilink.errors.CircuitBreakerError: feed is temporarily unavailable

        ```
    """

    def __init__(
        self,
        service: str,
        *,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        recovery_timeout: float = DEFAULT_RECOVERY_TIMEOUT,
        on_state_change: Callable[[str, CircuitState, CircuitState], None] | None = None,
    ) -> None:
        validate_circuit_params(failure_threshold, recovery_timeout)

        self._service = service
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._on_state_change = on_state_change

        # State tracking (protected by lock)
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._trial_in_flight = False
        # Incremented whenever the circuit opens or is reset
        self._generation = 0
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(service={self._service!r}, state={self.state.value}, "
            f"failure_count={self.failure_count})"
        )

    @property
    def service(self) -> str:
        return self._service

    @property
    def state(self) -> CircuitState:
        """The current circuit state.

        An OPEN circuit whose cooldown has elapsed is still reported as
        OPEN until the next call checks it and lets the trial through.
        """
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        """The current count of consecutive failures."""
        with self._lock:
            return self._failure_count

    @property
    def opened_at(self) -> float | None:
        """The ``time.monotonic`` timestamp at which the circuit last
        opened, or ``None``."""
        with self._lock:
            return self._opened_at

    def _change_state(self, new_state: CircuitState) -> None:
        """Change the circuit state and invoke callback.

        Must be called with ``self._lock`` held.
        """
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        logger.debug(
            f"Circuit breaker for {self._service} changed: {old_state.value} -> {new_state.value}"
        )
        if self._on_state_change is not None:
            try:
                self._on_state_change(self._service, old_state, new_state)
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Error in circuit breaker state change callback: {e}")

    def _open(self) -> None:
        """Open (or re-open) the circuit. Must be called with the lock
        held."""
        self._opened_at = time.monotonic()
        self._trial_in_flight = False
        self._generation += 1
        self._change_state(CircuitState.OPEN)

    def _is_stale(self, ticket: int | None) -> bool:
        """Return ``True`` if ``ticket`` was issued before the circuit
        last opened or was reset. Must be called with the lock held."""
        if ticket is None or ticket == self._generation:
            return False
        logger.debug(
            f"Circuit breaker for {self._service} ignoring outcome of a call "
            f"admitted before the circuit last opened"
        )
        return True

    def check(self) -> int:
        """Check if the circuit allows a call to proceed.

        If the circuit is OPEN and the cooldown has elapsed, the circuit
        moves to HALF_OPEN and this call becomes the single trial call.
        Any other caller arriving while the trial is in flight fails
        fast.

        Returns:
            A ticket identifying the circuit generation that admitted
            the call. Passing it back to ``record_success``,
            ``record_failure`` or ``release`` makes the breaker ignore
            the outcome if the circuit opened in the meantime.

        Raises:
            CircuitBreakerError: If the call is not allowed.
        """
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return self._generation

            if self._state == CircuitState.OPEN:
                opened_at = self._opened_at if self._opened_at is not None else 0.0
                if time.monotonic() - opened_at < self._recovery_timeout:
                    raise CircuitBreakerError(self._service)
                self._change_state(CircuitState.HALF_OPEN)
                self._trial_in_flight = True
                logger.debug(f"Circuit breaker for {self._service} allowing trial call")
                return self._generation

            # HALF_OPEN
            if self._trial_in_flight:
                raise CircuitBreakerError(self._service)
            self._trial_in_flight = True
            return self._generation

    def record_success(self, ticket: int | None = None) -> None:
        """Record a successful call.

        Resets the failure count. Only the HALF_OPEN trial closes the
        circuit: a success recorded while the circuit is OPEN leaves it
        OPEN until the cooldown elapses.

        Args:
            ticket: The value returned by ``check`` for this call. A
                stale ticket makes the success a no-op.
        """
        with self._lock:
            if self._is_stale(ticket):
                return
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._trial_in_flight = False
                self._opened_at = None
                self._change_state(CircuitState.CLOSED)
                logger.info(f"Circuit breaker for {self._service} recovered, circuit CLOSED")

    def record_failure(self, ticket: int | None = None) -> None:
        """Record a failed call.

        Increments the failure count. The circuit opens when the
        threshold is reached, or immediately when the failed call was
        the HALF_OPEN trial.

        Args:
            ticket: The value returned by ``check`` for this call. A
                stale ticket makes the failure a no-op.
        """
        with self._lock:
            if self._is_stale(ticket):
                return
            self._failure_count += 1
            logger.debug(
                f"Circuit breaker for {self._service} recorded failure "
                f"({self._failure_count}/{self._failure_threshold})"
            )
            if self._state == CircuitState.HALF_OPEN:
                self._open()
                logger.warning(f"Circuit breaker for {self._service} trial failed, circuit re-OPENED")
            elif self._state == CircuitState.CLOSED and self._failure_count >= self._failure_threshold:
                self._open()
                logger.warning(
                    f"Circuit breaker for {self._service} OPENED after "
                    f"{self._failure_count} consecutive failures"
                )

    def release(self, ticket: int | None = None) -> None:
        """Release the HALF_OPEN trial slot without recording an outcome.

        Used when the trial call is cancelled before it settles.

        Args:
            ticket: The value returned by ``check`` for this call. A
                stale ticket leaves the trial slot untouched.
        """
        with self._lock:
            if self._is_stale(ticket):
                return
            if self._state == CircuitState.HALF_OPEN:
                self._trial_in_flight = False

    def reset(self) -> None:
        """Manually reset the circuit breaker to CLOSED state."""
        with self._lock:
            self._failure_count = 0
            self._opened_at = None
            self._trial_in_flight = False
            self._generation += 1
            if self._state != CircuitState.CLOSED:
                self._change_state(CircuitState.CLOSED)
                logger.info(f"Circuit breaker for {self._service} manually reset to CLOSED state")

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        classifier: ErrorClassifier | None = None,
    ) -> T:
        """Execute an async operation through the circuit breaker.

        Args:
            operation: Zero-argument callable returning an awaitable.
            classifier: Classifier turning failures into ``AppError``.
                Defaults to a plain ``ErrorClassifier``.

        Returns:
            The result of the operation.

        Raises:
            CircuitBreakerError: If the circuit does not allow the call.
            AppError: The classified failure of the operation.
        """
        ticket = self.check()
        try:
            result = await operation()
        except Exception as exc:
            self.record_failure(ticket)
            error = (classifier or ErrorClassifier()).classify(exc, self._service)
            if error is exc:
                raise
            raise error from exc
        except BaseException:
            self.release(ticket)
            raise
        self.record_success(ticket)
        return result


class CircuitBreakerRegistry:
    r"""Circuit breakers for all service keys.

    Breakers are created on first use with the registry's settings.
    The registry is an explicit object rather than process-wide state,
    so each service layer (and each test) owns its breakers.

    Args:
        failure_threshold: Consecutive failures before a circuit opens.
        recovery_timeout: Cooldown in seconds before a trial call.
        classifier: Classifier used to turn failures into ``AppError``.
        on_state_change: Optional callback called on every state change
            of every breaker with (service, old_state, new_state).

    Example:
        ```pycon
        >>> from resilink.circuit_breaker import CircuitBreakerRegistry
        >>> registry = CircuitBreakerRegistry(failure_threshold=2)
        >>> registry.get("feed") is registry.get("feed")
        True
        >>> registry.state("likes")
        <CircuitState.CLOSED: 'closed'>

        ```
    """

    def __init__(
        self,
        *,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        recovery_timeout: float = DEFAULT_RECOVERY_TIMEOUT,
        classifier: ErrorClassifier | None = None,
        on_state_change: Callable[[str, CircuitState, CircuitState], None] | None = None,
    ) -> None:
        validate_circuit_params(failure_threshold, recovery_timeout)
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._classifier = classifier if classifier is not None else ErrorClassifier()
        self._on_state_change = on_state_change
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        with self._lock:
            services = sorted(self._breakers)
        return f"{type(self).__name__}(services={services})"

    def get(self, service: str) -> CircuitBreaker:
        """Return the breaker of ``service``, creating it if needed."""
        with self._lock:
            breaker = self._breakers.get(service)
            if breaker is None:
                breaker = CircuitBreaker(
                    service,
                    failure_threshold=self._failure_threshold,
                    recovery_timeout=self._recovery_timeout,
                    on_state_change=self._on_state_change,
                )
                self._breakers[service] = breaker
            return breaker

    def state(self, service: str) -> CircuitState:
        return self.get(service).state

    def reset(self, service: str | None = None) -> None:
        """Reset one breaker, or all of them when ``service`` is None."""
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            if service is None or breaker.service == service:
                breaker.reset()

    async def execute(self, operation: Callable[[], Awaitable[T]], service: str) -> T:
        """Execute an async operation through the breaker of ``service``.

        Args:
            operation: Zero-argument callable returning an awaitable.
            service: The service key.

        Returns:
            The result of the operation.

        Raises:
            CircuitBreakerError: If the circuit of ``service`` is open.
            AppError: The classified failure of the operation.
        """
        return await self.get(service).call(operation, self._classifier)
