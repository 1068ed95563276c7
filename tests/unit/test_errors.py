r"""Unit tests for the error taxonomy."""

from __future__ import annotations

import pytest

from resilink.errors import (
    RETRYABLE_KINDS,
    USER_RETRYABLE_KINDS,
    AppError,
    CircuitBreakerError,
    ConfigurationError,
    ErrorKind,
)

##############################
#     Tests for ErrorKind    #
##############################


def test_error_kind_count() -> None:
    assert len(ErrorKind) == 13


def test_error_kind_values_are_snake_case() -> None:
    for kind in ErrorKind:
        assert kind.value == kind.name.lower()


def test_retryable_kinds() -> None:
    assert RETRYABLE_KINDS == {
        ErrorKind.NETWORK_UNAVAILABLE,
        ErrorKind.TIMEOUT,
        ErrorKind.SERVER_ERROR,
    }


def test_retryable_kinds_subset_of_user_retryable_kinds() -> None:
    assert RETRYABLE_KINDS < USER_RETRYABLE_KINDS


#############################
#     Tests for AppError    #
#############################


def test_app_error_attributes() -> None:
    error = AppError(ErrorKind.VALIDATION_ERROR, "Weight must be positive", context="logWeight")
    assert error.kind == ErrorKind.VALIDATION_ERROR
    assert error.message == "Weight must be positive"
    assert error.context == "logWeight"
    assert error.type == "validation_error"
    assert str(error) == "Weight must be positive"


def test_app_error_context_default() -> None:
    assert AppError.timeout("slow").context is None


def test_app_error_repr() -> None:
    assert repr(AppError.timeout("slow")) == "AppError(kind=TIMEOUT, message='slow')"


def test_app_error_is_exception() -> None:
    with pytest.raises(AppError, match=r"Server error"):
        raise AppError.server_error("Server error")


@pytest.mark.parametrize(
    ("factory", "kind"),
    [
        (AppError.network_unavailable, ErrorKind.NETWORK_UNAVAILABLE),
        (AppError.network_error, ErrorKind.NETWORK_ERROR),
        (AppError.timeout, ErrorKind.TIMEOUT),
        (AppError.unauthorized, ErrorKind.UNAUTHORIZED),
        (AppError.server_error, ErrorKind.SERVER_ERROR),
        (AppError.validation_error, ErrorKind.VALIDATION_ERROR),
        (AppError.data_corruption, ErrorKind.DATA_CORRUPTION),
        (AppError.storage_error, ErrorKind.STORAGE_ERROR),
        (AppError.authentication_failed, ErrorKind.AUTHENTICATION_FAILED),
        (AppError.permission_denied, ErrorKind.PERMISSION_DENIED),
        (AppError.quota_exceeded, ErrorKind.QUOTA_EXCEEDED),
        (AppError.max_retries_exceeded, ErrorKind.MAX_RETRIES_EXCEEDED),
        (AppError.unknown, ErrorKind.UNKNOWN),
    ],
)
def test_app_error_factories(factory: object, kind: ErrorKind) -> None:
    error = factory("message", context="ctx")
    assert error.kind == kind
    assert error.message == "message"
    assert error.context == "ctx"


def test_app_error_equality() -> None:
    assert AppError.timeout("slow") == AppError.timeout("slow")
    assert AppError.timeout("slow") != AppError.timeout("slower")
    assert AppError.timeout("slow") != AppError.server_error("slow")
    assert AppError.timeout("slow", context="a") != AppError.timeout("slow", context="b")


def test_app_error_equality_other_type() -> None:
    assert AppError.timeout("slow") != "slow"


def test_app_error_hash() -> None:
    assert len({AppError.timeout("slow"), AppError.timeout("slow")}) == 1


@pytest.mark.parametrize(
    ("kind", "title", "icon"),
    [
        (ErrorKind.NETWORK_UNAVAILABLE, "Connection Issue", "wifi.exclamationmark"),
        (ErrorKind.TIMEOUT, "Request Timeout", "wifi.exclamationmark"),
        (ErrorKind.UNAUTHORIZED, "Access Denied", "lock.shield"),
        (ErrorKind.PERMISSION_DENIED, "Permission Denied", "lock.shield"),
        (ErrorKind.SERVER_ERROR, "Server Error", "server.rack"),
        (ErrorKind.VALIDATION_ERROR, "Invalid Data", "exclamationmark.triangle"),
        (ErrorKind.MAX_RETRIES_EXCEEDED, "Retry Limit Reached", "arrow.clockwise.circle"),
        (ErrorKind.UNKNOWN, "Unexpected Error", "questionmark.circle"),
    ],
)
def test_app_error_title_and_icon(kind: ErrorKind, title: str, icon: str) -> None:
    error = AppError(kind, "message")
    assert error.title == title
    assert error.icon == icon


def test_app_error_every_kind_has_presentation() -> None:
    for kind in ErrorKind:
        error = AppError(kind, "message")
        assert error.title
        assert error.icon
        assert error.recovery_suggestion


def test_app_error_recovery_suggestion() -> None:
    assert (
        AppError.network_unavailable("offline").recovery_suggestion
        == "Check your internet connection and try again."
    )
    assert AppError.unauthorized("expired").recovery_suggestion == "Please log out and log back in."


def test_app_error_recovery_suggestion_default() -> None:
    assert (
        AppError.storage_error("disk full").recovery_suggestion
        == "Please try again. If the problem persists, contact support."
    )


@pytest.mark.parametrize("kind", list(ErrorKind))
def test_app_error_should_show_retry_button(kind: ErrorKind) -> None:
    assert AppError(kind, "message").should_show_retry_button == (kind in USER_RETRYABLE_KINDS)


def test_app_error_network_error_shows_retry_button() -> None:
    assert AppError.network_error("reset").should_show_retry_button


def test_app_error_validation_error_hides_retry_button() -> None:
    assert not AppError.validation_error("bad").should_show_retry_button


#######################################
#     Tests for CircuitBreakerError   #
#######################################


def test_circuit_breaker_error() -> None:
    error = CircuitBreakerError("feed")
    assert isinstance(error, AppError)
    assert error.kind == ErrorKind.SERVER_ERROR
    assert error.message == "feed is temporarily unavailable"
    assert error.service == "feed"
    assert error.context == "feed"


def test_circuit_breaker_error_custom_message() -> None:
    assert CircuitBreakerError("feed", "circuit open").message == "circuit open"


########################################
#     Tests for ConfigurationError     #
########################################


def test_configuration_error_is_value_error() -> None:
    assert issubclass(ConfigurationError, ValueError)
