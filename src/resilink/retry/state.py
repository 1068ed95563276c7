r"""Per-context retry counters.

The store is an explicit object injected into the retry executor, so
each executor (and each test) gets isolated state.
"""

from __future__ import annotations

__all__ = ["RetryStateStore"]

import threading


class RetryStateStore:
    r"""Thread-safe map from operation context to the number of
    consecutive failed attempts.

    Example:
        ```pycon
        >>> from resilink.retry.state import RetryStateStore
        >>> store = RetryStateStore()
        >>> store.record_failure("loadFeed", cap=3)
        1
        >>> store.record_failure("loadFeed", cap=3)
        2
        >>> store.get("loadFeed")
        2
        >>> store.reset("loadFeed")
        >>> store.get("loadFeed")
        0

        ```
    """

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        with self._lock:
            return f"{type(self).__name__}({self._counts!r})"

    def get(self, context: str) -> int:
        with self._lock:
            return self._counts.get(context, 0)

    def record_failure(self, context: str, cap: int) -> int:
        """Increment the counter of ``context``, never past ``cap``.

        Args:
            context: The operation context.
            cap: The maximum value of the counter.

        Returns:
            The new counter value.
        """
        with self._lock:
            count = min(self._counts.get(context, 0) + 1, cap)
            self._counts[context] = count
            return count

    def reset(self, context: str) -> None:
        with self._lock:
            self._counts[context] = 0

    def snapshot(self) -> dict[str, int]:
        """Return a copy of all counters."""
        with self._lock:
            return dict(self._counts)
