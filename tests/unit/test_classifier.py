r"""Unit tests for the error classifier."""

from __future__ import annotations

import errno
import logging
import socket

import httpx
import pytest

from resilink.classifier import (
    ErrorClassifier,
    NetworkError,
    NetworkErrorCode,
    classify,
    network_error_code,
    should_retry,
)
from resilink.errors import AppError, ErrorKind

TEST_URL = "https://api.example.com/feed"


def make_status_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", TEST_URL)
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError(f"status {status_code}", request=request, response=response)


########################################
#     Tests for network_error_code     #
########################################


@pytest.mark.parametrize(
    ("exc", "code"),
    [
        (NetworkError(NetworkErrorCode.NOT_CONNECTED), NetworkErrorCode.NOT_CONNECTED),
        (httpx.ConnectTimeout("timed out"), NetworkErrorCode.TIMED_OUT),
        (httpx.ReadTimeout("timed out"), NetworkErrorCode.TIMED_OUT),
        (httpx.ConnectError("refused"), NetworkErrorCode.CANNOT_CONNECT),
        (httpx.ReadError("reset"), NetworkErrorCode.CONNECTION_LOST),
        (httpx.RemoteProtocolError("bad frame"), NetworkErrorCode.BAD_SERVER_RESPONSE),
        (httpx.UnsupportedProtocol("ftp"), NetworkErrorCode.OTHER),
        (socket.gaierror("name resolution"), NetworkErrorCode.CANNOT_FIND_HOST),
        (TimeoutError(), NetworkErrorCode.TIMED_OUT),
        (ConnectionRefusedError(), NetworkErrorCode.CANNOT_CONNECT),
        (ConnectionResetError(), NetworkErrorCode.CONNECTION_LOST),
        (BrokenPipeError(), NetworkErrorCode.CONNECTION_LOST),
        (OSError(errno.ENETUNREACH, "unreachable"), NetworkErrorCode.NOT_CONNECTED),
        (ConnectionError("generic"), NetworkErrorCode.OTHER),
    ],
)
def test_network_error_code(exc: BaseException, code: NetworkErrorCode) -> None:
    assert network_error_code(exc) == code


@pytest.mark.parametrize(
    "exc", [ValueError("nope"), KeyError("x"), OSError(errno.ENOENT, "missing"), make_status_error(500)]
)
def test_network_error_code_none(exc: BaseException) -> None:
    assert network_error_code(exc) is None


def test_network_error_default_message() -> None:
    assert str(NetworkError(NetworkErrorCode.CONNECTION_LOST)) == "connection_lost"


def test_network_error_custom_message() -> None:
    error = NetworkError(NetworkErrorCode.NOT_CONNECTED, "airplane mode")
    assert str(error) == "airplane mode"
    assert error.code == NetworkErrorCode.NOT_CONNECTED


#####################################
#     Tests for ErrorClassifier     #
#####################################


def test_classify_app_error_passthrough() -> None:
    error = AppError.validation_error("bad input", context="logWeight")
    assert ErrorClassifier().classify(error) is error


@pytest.mark.parametrize(
    ("code", "kind", "message"),
    [
        (
            NetworkErrorCode.NOT_CONNECTED,
            ErrorKind.NETWORK_UNAVAILABLE,
            "No internet connection. Please check your network settings.",
        ),
        (
            NetworkErrorCode.CONNECTION_LOST,
            ErrorKind.NETWORK_UNAVAILABLE,
            "No internet connection. Please check your network settings.",
        ),
        (NetworkErrorCode.TIMED_OUT, ErrorKind.TIMEOUT, "Request timed out. Please try again."),
        (
            NetworkErrorCode.CANNOT_FIND_HOST,
            ErrorKind.NETWORK_UNAVAILABLE,
            "Cannot connect to server. Please try again later.",
        ),
        (
            NetworkErrorCode.CANNOT_CONNECT,
            ErrorKind.NETWORK_UNAVAILABLE,
            "Cannot connect to server. Please try again later.",
        ),
        (
            NetworkErrorCode.BAD_SERVER_RESPONSE,
            ErrorKind.SERVER_ERROR,
            "Server returned an invalid response.",
        ),
    ],
)
def test_classify_network_codes(code: NetworkErrorCode, kind: ErrorKind, message: str) -> None:
    error = classify(NetworkError(code))
    assert error.kind == kind
    assert error.message == message


def test_classify_other_network_code() -> None:
    error = classify(NetworkError(NetworkErrorCode.OTHER, "weird socket state"))
    assert error.kind == ErrorKind.NETWORK_ERROR
    assert error.message == "Network error: weird socket state"


def test_classify_httpx_timeout() -> None:
    assert classify(httpx.ReadTimeout("timed out")).kind == ErrorKind.TIMEOUT


def test_classify_httpx_connect_error() -> None:
    assert classify(httpx.ConnectError("refused")).kind == ErrorKind.NETWORK_UNAVAILABLE


@pytest.mark.parametrize(
    ("status_code", "kind"),
    [
        (400, ErrorKind.VALIDATION_ERROR),
        (401, ErrorKind.UNAUTHORIZED),
        (403, ErrorKind.PERMISSION_DENIED),
        (404, ErrorKind.NETWORK_ERROR),
        (422, ErrorKind.VALIDATION_ERROR),
        (429, ErrorKind.QUOTA_EXCEEDED),
        (500, ErrorKind.SERVER_ERROR),
        (502, ErrorKind.SERVER_ERROR),
        (503, ErrorKind.SERVER_ERROR),
    ],
)
def test_classify_http_status(status_code: int, kind: ErrorKind) -> None:
    assert classify(make_status_error(status_code)).kind == kind


def test_classify_http_status_message() -> None:
    assert (
        classify(make_status_error(503)).message
        == "Server error (status 503). Please try again later."
    )
    assert (
        classify(make_status_error(401)).message
        == "Your session has expired. Please sign in again."
    )


@pytest.mark.parametrize(
    ("description", "kind", "message"),
    [
        (
            "rpc error: PERMISSION_DENIED",
            ErrorKind.UNAUTHORIZED,
            "You don't have permission to perform this action",
        ),
        (
            "backend UNAVAILABLE",
            ErrorKind.NETWORK_UNAVAILABLE,
            "Service temporarily unavailable. Please try again.",
        ),
        (
            "DEADLINE_EXCEEDED after 10s",
            ErrorKind.TIMEOUT,
            "Request timed out. Please check your connection.",
        ),
    ],
)
def test_classify_backend_tokens(description: str, kind: ErrorKind, message: str) -> None:
    error = classify(RuntimeError(description))
    assert error.kind == kind
    assert error.message == message


def test_classify_backend_tokens_order() -> None:
    """Test that the first matching token wins."""
    error = classify(RuntimeError("PERMISSION_DENIED while UNAVAILABLE"))
    assert error.kind == ErrorKind.UNAUTHORIZED


def test_classify_unknown() -> None:
    error = classify(KeyError("missing"))
    assert error.kind == ErrorKind.UNKNOWN
    assert error.message == "An unexpected error occurred: 'missing'"


def test_classify_unknown_empty_description() -> None:
    assert classify(ValueError()).message == "An unexpected error occurred: ValueError"


def test_classify_logs(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="resilink.classifier"):
        ErrorClassifier(is_network_available=lambda: False).classify(TimeoutError(), "loadFeed")
    record = next(r for r in caplog.records if r.name == "resilink.classifier")
    assert record.getMessage() == (
        "Classified error in 'loadFeed' as timeout: Request timed out. Please try again."
    )
    assert record.operation == "loadFeed"
    assert record.error_kind == "timeout"
    assert record.network_available is False


def test_module_classify_logs_unknown_connectivity(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="resilink.classifier"):
        classify(TimeoutError(), "loadFeed")
    record = next(r for r in caplog.records if r.name == "resilink.classifier")
    assert record.network_available is None


def test_classify_logging_failure_is_ignored() -> None:
    def broken() -> bool:
        msg = "monitor unavailable"
        raise RuntimeError(msg)

    error = ErrorClassifier(is_network_available=broken).classify(TimeoutError(), "loadFeed")
    assert error.kind == ErrorKind.TIMEOUT


def test_error_classifier_repr() -> None:
    assert repr(ErrorClassifier()) == "ErrorClassifier()"


##################################
#     Tests for should_retry     #
##################################


@pytest.mark.parametrize(
    "kind", [ErrorKind.NETWORK_UNAVAILABLE, ErrorKind.TIMEOUT, ErrorKind.SERVER_ERROR]
)
def test_should_retry_true(kind: ErrorKind) -> None:
    assert should_retry(AppError(kind, "message"))
    assert ErrorClassifier.should_retry(AppError(kind, "message"))


@pytest.mark.parametrize(
    "kind",
    [
        ErrorKind.NETWORK_ERROR,
        ErrorKind.UNAUTHORIZED,
        ErrorKind.VALIDATION_ERROR,
        ErrorKind.DATA_CORRUPTION,
        ErrorKind.STORAGE_ERROR,
        ErrorKind.AUTHENTICATION_FAILED,
        ErrorKind.PERMISSION_DENIED,
        ErrorKind.QUOTA_EXCEEDED,
        ErrorKind.MAX_RETRIES_EXCEEDED,
        ErrorKind.UNKNOWN,
    ],
)
def test_should_retry_false(kind: ErrorKind) -> None:
    assert not should_retry(AppError(kind, "message"))
