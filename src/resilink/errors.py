r"""Closed error taxonomy shared by every resilience component.

Every failure that crosses the resilience layer is turned into an
``AppError`` carrying one of the thirteen ``ErrorKind`` members. The
presentation attributes (title, icon, recovery suggestion, retry
affordance) are derived from the kind so that UI collaborators never
need to inspect raw exceptions.

Example:
    ```pycon
    >>> from resilink.errors import AppError, ErrorKind
    >>> error = AppError.timeout("Request timed out. Please try again.")
    >>> error.kind
    <ErrorKind.TIMEOUT: 'timeout'>
    >>> error.title
    'Request Timeout'
    >>> error.should_show_retry_button
    True

    ```
"""

from __future__ import annotations

__all__ = [
    "AppError",
    "CircuitBreakerError",
    "ConfigurationError",
    "ErrorKind",
    "RETRYABLE_KINDS",
    "USER_RETRYABLE_KINDS",
]

from enum import Enum


class ErrorKind(Enum):
    """Kinds of application errors.

    The values double as the snake_case ``type`` tag used in logs.
    """

    NETWORK_UNAVAILABLE = "network_unavailable"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    UNAUTHORIZED = "unauthorized"
    SERVER_ERROR = "server_error"
    VALIDATION_ERROR = "validation_error"
    DATA_CORRUPTION = "data_corruption"
    STORAGE_ERROR = "storage_error"
    AUTHENTICATION_FAILED = "authentication_failed"
    PERMISSION_DENIED = "permission_denied"
    QUOTA_EXCEEDED = "quota_exceeded"
    MAX_RETRIES_EXCEEDED = "max_retries_exceeded"
    UNKNOWN = "unknown"


# Kinds the retry executor retries by default
RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset(
    {ErrorKind.NETWORK_UNAVAILABLE, ErrorKind.TIMEOUT, ErrorKind.SERVER_ERROR}
)

# Kinds for which the user is offered a "Retry" button
USER_RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset(
    {
        ErrorKind.NETWORK_UNAVAILABLE,
        ErrorKind.NETWORK_ERROR,
        ErrorKind.TIMEOUT,
        ErrorKind.SERVER_ERROR,
        ErrorKind.MAX_RETRIES_EXCEEDED,
    }
)

_TITLES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK_UNAVAILABLE: "Connection Issue",
    ErrorKind.NETWORK_ERROR: "Network Error",
    ErrorKind.TIMEOUT: "Request Timeout",
    ErrorKind.UNAUTHORIZED: "Access Denied",
    ErrorKind.SERVER_ERROR: "Server Error",
    ErrorKind.VALIDATION_ERROR: "Invalid Data",
    ErrorKind.DATA_CORRUPTION: "Data Error",
    ErrorKind.STORAGE_ERROR: "Storage Error",
    ErrorKind.AUTHENTICATION_FAILED: "Authentication Failed",
    ErrorKind.PERMISSION_DENIED: "Permission Denied",
    ErrorKind.QUOTA_EXCEEDED: "Quota Exceeded",
    ErrorKind.MAX_RETRIES_EXCEEDED: "Retry Limit Reached",
    ErrorKind.UNKNOWN: "Unexpected Error",
}

_ICONS: dict[ErrorKind, str] = {
    ErrorKind.NETWORK_UNAVAILABLE: "wifi.exclamationmark",
    ErrorKind.NETWORK_ERROR: "wifi.exclamationmark",
    ErrorKind.TIMEOUT: "wifi.exclamationmark",
    ErrorKind.UNAUTHORIZED: "lock.shield",
    ErrorKind.PERMISSION_DENIED: "lock.shield",
    ErrorKind.SERVER_ERROR: "server.rack",
    ErrorKind.VALIDATION_ERROR: "exclamationmark.triangle",
    ErrorKind.DATA_CORRUPTION: "externaldrive.badge.exclamationmark",
    ErrorKind.STORAGE_ERROR: "externaldrive.badge.exclamationmark",
    ErrorKind.AUTHENTICATION_FAILED: "person.badge.key",
    ErrorKind.QUOTA_EXCEEDED: "gauge.badge.minus",
    ErrorKind.MAX_RETRIES_EXCEEDED: "arrow.clockwise.circle",
    ErrorKind.UNKNOWN: "questionmark.circle",
}

_DEFAULT_SUGGESTION = "Please try again. If the problem persists, contact support."

_RECOVERY_SUGGESTIONS: dict[ErrorKind, str] = {
    ErrorKind.NETWORK_UNAVAILABLE: "Check your internet connection and try again.",
    ErrorKind.TIMEOUT: "The request took too long. Please try again.",
    ErrorKind.UNAUTHORIZED: "Please log out and log back in.",
    ErrorKind.PERMISSION_DENIED: "Please log out and log back in.",
    ErrorKind.SERVER_ERROR: "Our servers are experiencing issues. Please try again later.",
    ErrorKind.VALIDATION_ERROR: "Please check your input and try again.",
    ErrorKind.QUOTA_EXCEEDED: "You've reached your usage limit. Please try again later.",
    ErrorKind.MAX_RETRIES_EXCEEDED: (
        "Multiple attempts failed. Please check your connection and try again."
    ),
}


class AppError(Exception):
    r"""Application error with a kind from the closed taxonomy.

    Instances are value objects: the kind, message and context are set
    once at construction and exposed as read-only properties.

    Args:
        kind: The error kind.
        message: A human readable message.
        context: Optional operation context the error arose in
            (e.g. ``"loadFeed"``).

    Example:
        ```pycon
        >>> from resilink.errors import AppError, ErrorKind
        >>> error = AppError(ErrorKind.VALIDATION_ERROR, "Weight must be positive")
        >>> str(error)
        'Weight must be positive'
        >>> error.type
        'validation_error'
        >>> error.should_show_retry_button
        False

        ```
    """

    def __init__(self, kind: ErrorKind, message: str, *, context: str | None = None) -> None:
        super().__init__(message)
        self._kind = kind
        self._message = message
        self._context = context

    @property
    def kind(self) -> ErrorKind:
        return self._kind

    @property
    def message(self) -> str:
        return self._message

    @property
    def context(self) -> str | None:
        return self._context

    @property
    def type(self) -> str:
        """The snake_case tag of the error kind."""
        return self._kind.value

    @property
    def title(self) -> str:
        return _TITLES[self._kind]

    @property
    def icon(self) -> str:
        return _ICONS[self._kind]

    @property
    def recovery_suggestion(self) -> str:
        return _RECOVERY_SUGGESTIONS.get(self._kind, _DEFAULT_SUGGESTION)

    @property
    def should_show_retry_button(self) -> bool:
        """Whether the user should be offered a "Retry" affordance."""
        return self._kind in USER_RETRYABLE_KINDS

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self._kind.name}, message={self._message!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AppError):
            return NotImplemented
        return (self._kind, self._message, self._context) == (
            other._kind,
            other._message,
            other._context,
        )

    def __hash__(self) -> int:
        return hash((self._kind, self._message, self._context))

    @classmethod
    def network_unavailable(cls, message: str, *, context: str | None = None) -> AppError:
        return cls(ErrorKind.NETWORK_UNAVAILABLE, message, context=context)

    @classmethod
    def network_error(cls, message: str, *, context: str | None = None) -> AppError:
        return cls(ErrorKind.NETWORK_ERROR, message, context=context)

    @classmethod
    def timeout(cls, message: str, *, context: str | None = None) -> AppError:
        return cls(ErrorKind.TIMEOUT, message, context=context)

    @classmethod
    def unauthorized(cls, message: str, *, context: str | None = None) -> AppError:
        return cls(ErrorKind.UNAUTHORIZED, message, context=context)

    @classmethod
    def server_error(cls, message: str, *, context: str | None = None) -> AppError:
        return cls(ErrorKind.SERVER_ERROR, message, context=context)

    @classmethod
    def validation_error(cls, message: str, *, context: str | None = None) -> AppError:
        return cls(ErrorKind.VALIDATION_ERROR, message, context=context)

    @classmethod
    def data_corruption(cls, message: str, *, context: str | None = None) -> AppError:
        return cls(ErrorKind.DATA_CORRUPTION, message, context=context)

    @classmethod
    def storage_error(cls, message: str, *, context: str | None = None) -> AppError:
        return cls(ErrorKind.STORAGE_ERROR, message, context=context)

    @classmethod
    def authentication_failed(cls, message: str, *, context: str | None = None) -> AppError:
        return cls(ErrorKind.AUTHENTICATION_FAILED, message, context=context)

    @classmethod
    def permission_denied(cls, message: str, *, context: str | None = None) -> AppError:
        return cls(ErrorKind.PERMISSION_DENIED, message, context=context)

    @classmethod
    def quota_exceeded(cls, message: str, *, context: str | None = None) -> AppError:
        return cls(ErrorKind.QUOTA_EXCEEDED, message, context=context)

    @classmethod
    def max_retries_exceeded(cls, message: str, *, context: str | None = None) -> AppError:
        return cls(ErrorKind.MAX_RETRIES_EXCEEDED, message, context=context)

    @classmethod
    def unknown(cls, message: str, *, context: str | None = None) -> AppError:
        return cls(ErrorKind.UNKNOWN, message, context=context)


class CircuitBreakerError(AppError):
    """Raised when a call is short-circuited by an open circuit.

    Always of kind ``SERVER_ERROR``.

    Args:
        service: The protected service name.
        message: Optional message override.
    """

    def __init__(self, service: str, message: str | None = None) -> None:
        super().__init__(
            ErrorKind.SERVER_ERROR,
            message if message is not None else f"{service} is temporarily unavailable",
            context=service,
        )
        self.service = service


class ConfigurationError(ValueError):
    """Raised when a resilience component is configured with invalid
    values."""
