r"""Classification of raw failures into the closed ``AppError``
taxonomy.

The classifier is the only place that inspects raw exceptions. Every
other component works on ``AppError`` values: the retry executor asks
``should_retry``, the reporter shows the presentation attributes.

The rules are applied in order:

1. ``AppError`` instances pass through unchanged.
2. Failures carrying a network-stack error code (an explicit
   ``NetworkError``, an ``httpx`` transport error, or a builtin socket
   error) are mapped by code.
3. ``httpx.HTTPStatusError`` is mapped by status code.
4. Backend tokens in the error description (``PERMISSION_DENIED``,
   ``UNAVAILABLE``, ``DEADLINE_EXCEEDED``) are recognized.
5. Everything else becomes ``UNKNOWN``.

Example:
    ```pycon
    >>> from resilink.classifier import NetworkError, NetworkErrorCode, classify
    >>> classify(NetworkError(NetworkErrorCode.NOT_CONNECTED)).kind
    <ErrorKind.NETWORK_UNAVAILABLE: 'network_unavailable'>
    >>> classify(RuntimeError("rpc error: DEADLINE_EXCEEDED")).kind
    <ErrorKind.TIMEOUT: 'timeout'>

    ```
"""

from __future__ import annotations

__all__ = [
    "ErrorClassifier",
    "NetworkError",
    "NetworkErrorCode",
    "classify",
    "default_retry_predicate",
    "network_error_code",
    "should_retry",
]

import asyncio
import errno
import logging
import socket
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

import httpx

from resilink.errors import RETRYABLE_KINDS, AppError, ErrorKind
from resilink.utils.structured_logging import log_structured

if TYPE_CHECKING:
    from collections.abc import Callable

logger: logging.Logger = logging.getLogger(__name__)


class NetworkErrorCode(Enum):
    """Network-stack error codes recognized by the classifier."""

    NOT_CONNECTED = "not_connected"
    CONNECTION_LOST = "connection_lost"
    TIMED_OUT = "timed_out"
    CANNOT_FIND_HOST = "cannot_find_host"
    CANNOT_CONNECT = "cannot_connect"
    BAD_SERVER_RESPONSE = "bad_server_response"
    OTHER = "other"


class NetworkError(Exception):
    """Network failure carrying an explicit error code.

    Platform adapters (reachability monitors, SDK bridges) raise this
    when they know precisely what went wrong at the network layer.

    Args:
        code: The network-stack error code.
        message: Optional description; defaults to the code value.
    """

    def __init__(self, code: NetworkErrorCode, message: str | None = None) -> None:
        super().__init__(message if message is not None else code.value)
        self.code = code


_NOT_CONNECTED_ERRNOS = frozenset({errno.ENETUNREACH, errno.ENETDOWN, errno.EHOSTUNREACH})

_CODE_TO_ERROR: dict[NetworkErrorCode, tuple[ErrorKind, str]] = {
    NetworkErrorCode.NOT_CONNECTED: (
        ErrorKind.NETWORK_UNAVAILABLE,
        "No internet connection. Please check your network settings.",
    ),
    NetworkErrorCode.CONNECTION_LOST: (
        ErrorKind.NETWORK_UNAVAILABLE,
        "No internet connection. Please check your network settings.",
    ),
    NetworkErrorCode.TIMED_OUT: (ErrorKind.TIMEOUT, "Request timed out. Please try again."),
    NetworkErrorCode.CANNOT_FIND_HOST: (
        ErrorKind.NETWORK_UNAVAILABLE,
        "Cannot connect to server. Please try again later.",
    ),
    NetworkErrorCode.CANNOT_CONNECT: (
        ErrorKind.NETWORK_UNAVAILABLE,
        "Cannot connect to server. Please try again later.",
    ),
    NetworkErrorCode.BAD_SERVER_RESPONSE: (
        ErrorKind.SERVER_ERROR,
        "Server returned an invalid response.",
    ),
}

# Checked in order; the first token found in the description wins
_BACKEND_TOKENS: tuple[tuple[str, ErrorKind, str], ...] = (
    (
        "PERMISSION_DENIED",
        ErrorKind.UNAUTHORIZED,
        "You don't have permission to perform this action",
    ),
    (
        "UNAVAILABLE",
        ErrorKind.NETWORK_UNAVAILABLE,
        "Service temporarily unavailable. Please try again.",
    ),
    (
        "DEADLINE_EXCEEDED",
        ErrorKind.TIMEOUT,
        "Request timed out. Please check your connection.",
    ),
)


def network_error_code(exc: BaseException) -> NetworkErrorCode | None:
    """Extract the network-stack error code carried by an exception.

    Args:
        exc: The raw exception.

    Returns:
        The error code, or ``None`` if the exception is not a network
        failure.

    Example:
        ```pycon
        >>> import httpx
        >>> from resilink.classifier import network_error_code
        >>> network_error_code(httpx.ConnectTimeout("timed out"))
        <NetworkErrorCode.TIMED_OUT: 'timed_out'>
        >>> network_error_code(ConnectionRefusedError())
        <NetworkErrorCode.CANNOT_CONNECT: 'cannot_connect'>
        >>> network_error_code(ValueError("nope")) is None
        True

        ```
    """
    if isinstance(exc, NetworkError):
        return exc.code

    if isinstance(exc, httpx.TransportError):
        if isinstance(exc, httpx.TimeoutException):
            return NetworkErrorCode.TIMED_OUT
        if isinstance(exc, httpx.ConnectError):
            return NetworkErrorCode.CANNOT_CONNECT
        if isinstance(exc, httpx.NetworkError):
            return NetworkErrorCode.CONNECTION_LOST
        if isinstance(exc, httpx.ProtocolError):
            return NetworkErrorCode.BAD_SERVER_RESPONSE
        return NetworkErrorCode.OTHER

    if isinstance(exc, socket.gaierror):
        return NetworkErrorCode.CANNOT_FIND_HOST
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return NetworkErrorCode.TIMED_OUT
    if isinstance(exc, ConnectionRefusedError):
        return NetworkErrorCode.CANNOT_CONNECT
    if isinstance(exc, (ConnectionResetError, ConnectionAbortedError, BrokenPipeError)):
        return NetworkErrorCode.CONNECTION_LOST
    if isinstance(exc, OSError) and exc.errno in _NOT_CONNECTED_ERRNOS:
        return NetworkErrorCode.NOT_CONNECTED
    if isinstance(exc, ConnectionError):
        return NetworkErrorCode.OTHER
    return None


def _classify_status(exc: httpx.HTTPStatusError) -> AppError:
    status = exc.response.status_code
    if status == 401:
        return AppError.unauthorized("Your session has expired. Please sign in again.")
    if status == 403:
        return AppError.permission_denied("You don't have permission to perform this action")
    if status == 429:
        return AppError.quota_exceeded("Too many requests. Please try again later.")
    if status in (400, 422):
        return AppError.validation_error(f"The server rejected the request (status {status}).")
    if status >= 500:
        return AppError.server_error(f"Server error (status {status}). Please try again later.")
    return AppError.network_error(f"Network error: request failed with status {status}")


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class ErrorClassifier:
    r"""Map raw failures to ``AppError`` values and log every
    classification.

    Args:
        is_network_available: Optional callable returning the current
            connectivity state, included in every classification log.
            Typically ``lambda: monitor.is_available``.

    Example:
        ```pycon
        >>> from resilink.classifier import ErrorClassifier
        >>> from resilink.errors import AppError
        >>> classifier = ErrorClassifier()
        >>> error = AppError.validation_error("bad input")
        >>> classifier.classify(error) is error
        True
        >>> classifier.classify(KeyError("x")).kind
        <ErrorKind.UNKNOWN: 'unknown'>
        >>> classifier.should_retry(AppError.timeout("slow"))
        True

        ```
    """

    def __init__(self, is_network_available: Callable[[], bool] | None = None) -> None:
        self._is_network_available = is_network_available

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    def classify(self, raw_error: BaseException, context: str = "") -> AppError:
        """Classify a raw failure.

        Args:
            raw_error: The exception to classify.
            context: The operation context, used for logging only.

        Returns:
            The corresponding ``AppError``.
        """
        error = self._map(raw_error)
        self._log(error, context)
        return error

    @staticmethod
    def should_retry(error: AppError) -> bool:
        """Return whether ``error`` is retryable by default.

        Only ``NETWORK_UNAVAILABLE``, ``TIMEOUT`` and ``SERVER_ERROR``
        are retried.
        """
        return error.kind in RETRYABLE_KINDS

    def _map(self, raw_error: BaseException) -> AppError:
        if isinstance(raw_error, AppError):
            return raw_error

        code = network_error_code(raw_error)
        if code is not None:
            if code in _CODE_TO_ERROR:
                kind, message = _CODE_TO_ERROR[code]
                return AppError(kind, message)
            return AppError.network_error(f"Network error: {_describe(raw_error)}")

        if isinstance(raw_error, httpx.HTTPStatusError):
            return _classify_status(raw_error)

        description = str(raw_error)
        for token, kind, message in _BACKEND_TOKENS:
            if token in description:
                return AppError(kind, message)

        return AppError.unknown(f"An unexpected error occurred: {_describe(raw_error)}")

    def _log(self, error: AppError, context: str) -> None:
        try:
            network_available = (
                self._is_network_available() if self._is_network_available is not None else None
            )
            log_structured(
                logger,
                logging.INFO,
                f"Classified error in '{context}' as {error.type}: {error.message}",
                operation=context,
                classified_at=datetime.now(timezone.utc).isoformat(),
                error_kind=error.type,
                error_message=error.message,
                recovery_suggestion=error.recovery_suggestion,
                network_available=network_available,
            )
        except Exception as e:  # noqa: BLE001
            logger.debug(f"Failed to log error classification: {e}")


_default_classifier = ErrorClassifier()


def classify(raw_error: BaseException, context: str = "") -> AppError:
    """Classify a raw failure with the default classifier.

    The default classifier has no connectivity source, so its log
    records carry ``network_available=None``. Code running inside a
    ``ResilienceService`` should call ``service.classifier.classify``
    instead, which logs the state of the service's connectivity
    monitor.

    Args:
        raw_error: The exception to classify.
        context: The operation context, used for logging only.

    Returns:
        The corresponding ``AppError``.
    """
    return _default_classifier.classify(raw_error, context)


def should_retry(error: AppError) -> bool:
    """Default retry predicate: retry network-unavailable, timeout and
    server errors only."""
    return ErrorClassifier.should_retry(error)


default_retry_predicate = should_retry
