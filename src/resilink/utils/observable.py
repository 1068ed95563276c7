r"""Minimal push-based observable value.

UI collaborators subscribe to connectivity and current-error values
through this class. Listeners are plain callables invoked with the new
value whenever it changes.
"""

from __future__ import annotations

__all__ = ["Observable"]

import logging
import threading
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")


class Observable(Generic[T]):
    r"""Value holder that notifies listeners on change.

    Args:
        value: The initial value.

    Example:
        ```pycon
        >>> from resilink.utils.observable import Observable
        >>> online = Observable(True)
        >>> seen = []
        >>> unsubscribe = online.subscribe(seen.append)
        >>> online.set(False)
        True
        >>> online.set(False)  # unchanged, not notified
        False
        >>> unsubscribe()
        >>> online.set(True)
        True
        >>> seen
        [False]

        ```
    """

    def __init__(self, value: T) -> None:
        self._value = value
        self._listeners: list[Callable[[T], None]] = []
        self._lock = threading.Lock()

    @property
    def value(self) -> T:
        with self._lock:
            return self._value

    def set(self, value: T) -> bool:
        """Set a new value and notify listeners if it changed.

        Listener errors are logged and do not stop the other listeners.

        Args:
            value: The new value.

        Returns:
            ``True`` if the value changed, otherwise ``False``.
        """
        with self._lock:
            if self._value == value:
                return False
            self._value = value
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(value)
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Error in observable listener {listener!r}: {e}")
        return True

    def subscribe(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """Register a listener.

        Args:
            listener: Callable invoked with every new value.

        Returns:
            A function removing the listener when called.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
