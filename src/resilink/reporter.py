r"""Current-error observable driving the user-facing error display.

The reporter holds at most one current error together with the action
that re-runs the failed call. UI collaborators subscribe to it and
render ``presentation``; the retry affordance is only offered for
transient error kinds.
"""

from __future__ import annotations

__all__ = ["ErrorPresentation", "ErrorReporter"]

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from resilink.classifier import ErrorClassifier
from resilink.utils.observable import Observable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from resilink.connectivity import ConnectivityMonitor
    from resilink.errors import AppError

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ErrorPresentation:
    """What the UI shows for an error.

    Attributes:
        title: Short title, e.g. ``"Connection Issue"``.
        icon: Symbol name of the icon.
        message: The error message.
        recovery_suggestion: What the user can do about it.
        can_retry: Whether a "Retry" button is shown.
    """

    title: str
    icon: str
    message: str
    recovery_suggestion: str
    can_retry: bool


class ErrorReporter:
    r"""Publish terminal errors and drive the retry affordance.

    Reporting an error equal to the current one does not notify the
    subscribers again, but the retry action is replaced.

    Args:
        classifier: Classifier used for raw failures. Defaults to a
            classifier reading connectivity from ``monitor``.
        monitor: Optional connectivity monitor mirrored by
            ``is_network_available``.

    Example:
        ```pycon
        >>> from resilink.errors import AppError
        >>> from resilink.reporter import ErrorReporter
        >>> reporter = ErrorReporter()
        >>> _ = reporter.report(AppError.timeout("Request timed out. Please try again."))
        >>> reporter.presentation.title
        'Request Timeout'
        >>> reporter.presentation.can_retry
        True
        >>> reporter.dismiss()
        >>> reporter.presentation is None
        True

        ```
    """

    def __init__(
        self,
        classifier: ErrorClassifier | None = None,
        monitor: ConnectivityMonitor | None = None,
    ) -> None:
        self._monitor = monitor
        if classifier is None:
            classifier = ErrorClassifier(
                is_network_available=(lambda: monitor.is_available) if monitor is not None else None
            )
        self._classifier = classifier
        self._current: Observable[AppError | None] = Observable(None)
        self._retry_action: Callable[[], Awaitable[Any]] | None = None
        self._context = ""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(current_error={self.current_error!r})"

    @property
    def current_error(self) -> AppError | None:
        return self._current.value

    @property
    def is_showing_error(self) -> bool:
        return self._current.value is not None

    @property
    def is_network_available(self) -> bool:
        """Connectivity as reported by the monitor; ``True`` without
        one."""
        return self._monitor is None or self._monitor.is_available

    @property
    def presentation(self) -> ErrorPresentation | None:
        """The presentation of the current error, or ``None``."""
        error = self._current.value
        if error is None:
            return None
        return ErrorPresentation(
            title=error.title,
            icon=error.icon,
            message=error.message,
            recovery_suggestion=error.recovery_suggestion,
            can_retry=error.should_show_retry_button,
        )

    def subscribe(self, listener: Callable[[AppError | None], None]) -> Callable[[], None]:
        """Register a listener called with the new current error (or
        ``None`` when it is cleared).

        Returns:
            A function removing the listener.
        """
        return self._current.subscribe(listener)

    def report(
        self,
        error: BaseException,
        context: str = "",
        retry_action: Callable[[], Awaitable[Any]] | None = None,
    ) -> AppError:
        """Classify ``error`` and make it the current error.

        Args:
            error: The raw or already classified failure.
            context: The operation context.
            retry_action: Optional zero-argument async callable re-running
                the failed call, invoked by ``retry``.

        Returns:
            The classified error.
        """
        app_error = self._classifier.classify(error, context)
        self._retry_action = retry_action
        self._context = context
        self._current.set(app_error)
        logger.debug(f"Reported {app_error.type} error for '{context}': {app_error.message}")
        return app_error

    def dismiss(self) -> None:
        """Clear the current error and its retry action."""
        self._retry_action = None
        self._current.set(None)

    async def retry(self) -> bool:
        """Re-run the stored retry action.

        The action only runs when the current error offers a retry
        affordance. On success the error is cleared; on failure the new
        error is reported with the same action.

        Returns:
            ``True`` if the action ran and succeeded, otherwise ``False``.
        """
        error = self._current.value
        action = self._retry_action
        if error is None or action is None or not error.should_show_retry_button:
            return False

        try:
            await action()
        except Exception as exc:  # noqa: BLE001
            self.report(exc, self._context, retry_action=action)
            return False
        self.dismiss()
        return True
