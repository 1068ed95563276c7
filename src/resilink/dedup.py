r"""Collapse concurrent identical requests into one underlying call.

The first caller for a key starts the operation in a task and
registers it. Callers arriving while the task runs attach to it and
receive the same result, or the same failure. The registration is
removed by the task itself once the operation settles, or by the last
waiter when it leaves, so a call made after either starts a fresh
execution.

Example:
    ```pycon
    >>> import asyncio
    >>> from resilink.dedup import RequestDeduplicator
    >>> async def main():
    ...     dedup = RequestDeduplicator()
    ...     calls = []
    ...     async def load_feed():
    ...         calls.append(1)
    ...         await asyncio.sleep(0.01)
    ...         return ["post-1"]
    ...     results = await asyncio.gather(
    ...         dedup.execute("feed", load_feed),
    ...         dedup.execute("feed", load_feed),
    ...     )
    ...     return results, len(calls)
    ...
    >>> asyncio.run(main())
    ([['post-1'], ['post-1']], 1)

    ```
"""

from __future__ import annotations

__all__ = ["RequestDeduplicator"]

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any, TypeVar

from resilink.cancellation import run_cancellable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from resilink.cancellation import CancellationToken

T = TypeVar("T")

logger: logging.Logger = logging.getLogger(__name__)


class _InFlight:
    """Record of one in-flight request."""

    __slots__ = ("result_type", "task", "waiters")

    def __init__(self, result_type: type | None) -> None:
        self.result_type = result_type
        self.task: asyncio.Task[Any] | None = None
        self.waiters = 0


class RequestDeduplicator:
    r"""Deduplicate concurrent requests by key.

    At most one execution per key is in flight at any time. Waiters
    attach to the shared task through ``asyncio.shield``, so one
    waiter's cancellation never cancels work others still await. When
    the last waiter leaves, the shared task is cancelled.

    Example:
        ```pycon
        >>> from resilink.dedup import RequestDeduplicator
        >>> dedup = RequestDeduplicator()
        >>> dedup.in_flight_keys()
        []
        >>> dedup.is_in_flight("feed")
        False

        ```
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, _InFlight] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(in_flight={self.in_flight_keys()})"

    def in_flight_keys(self) -> list[str]:
        """Return the sorted keys with a running execution."""
        with self._lock:
            return sorted(self._in_flight)

    def is_in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    async def execute(
        self,
        key: str,
        operation: Callable[[], Awaitable[T]],
        *,
        result_type: type[T] | None = None,
        token: CancellationToken | None = None,
    ) -> T:
        """Run ``operation`` once per concurrent ``key``.

        Args:
            key: The deduplication key, e.g. ``"GET /feed"``.
            operation: Zero-argument callable returning an awaitable.
                Only the first caller's operation is invoked.
            result_type: Optional expected type of the result. Every
                caller sharing a key must declare the same type.
            token: Optional cancellation token. Cancelling it detaches
                this caller only.

        Returns:
            The result of the shared execution.

        Raises:
            TypeError: If ``result_type`` differs from the type declared
                by the caller that started the execution, or if the
                result is not an instance of the declared type.
            asyncio.CancelledError: If this caller is cancelled.
            Exception: Whatever the shared execution raised.
        """
        with self._lock:
            entry = self._in_flight.get(key)
            if entry is None:
                entry = _InFlight(result_type)
                entry.task = asyncio.create_task(self._run(key, entry, operation))
                self._in_flight[key] = entry
                logger.debug(f"Starting deduplicated request for {key}")
            elif entry.result_type is not result_type:
                msg = (
                    f"Deduplicated request {key!r} is in flight with result type "
                    f"{_type_name(entry.result_type)}, got {_type_name(result_type)}"
                )
                raise TypeError(msg)
            else:
                logger.debug(f"Joining in-flight request for {key}")
            entry.waiters += 1
            task = entry.task

        try:
            return await run_cancellable(asyncio.shield(task), token)
        except asyncio.CancelledError:
            self._detach(key, entry)
            raise
        finally:
            with self._lock:
                entry.waiters -= 1

    async def _run(self, key: str, entry: _InFlight, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            result = await operation()
        finally:
            with self._lock:
                if self._in_flight.get(key) is entry:
                    del self._in_flight[key]
        if entry.result_type is not None and not isinstance(result, entry.result_type):
            msg = (
                f"Deduplicated request {key!r} returned {type(result).__name__}, "
                f"expected {entry.result_type.__name__}"
            )
            raise TypeError(msg)
        return result

    def _detach(self, key: str, entry: _InFlight) -> None:
        """Cancel the shared task if the leaving waiter is the last
        one.

        The entry is unregistered before the task is cancelled, so a
        caller arriving while the cancellation is pending starts a fresh
        execution instead of joining the cancelled one.
        """
        task = entry.task
        with self._lock:
            last = entry.waiters <= 1 and task is not None and not task.done()
            if last and self._in_flight.get(key) is entry:
                del self._in_flight[key]
        if last and task is not None:
            logger.debug(f"Last waiter left, cancelling deduplicated request for {key}")
            task.cancel()


def _type_name(value: type | None) -> str:
    return "None" if value is None else value.__name__
