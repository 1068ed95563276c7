r"""Unit tests for the asynchronous retry executor."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, Mock, call

import httpx
import pytest

from resilink.backoff import ConstantBackoff
from resilink.cancellation import CancellationToken
from resilink.circuit_breaker import CircuitBreakerRegistry, CircuitState
from resilink.errors import AppError, CircuitBreakerError, ConfigurationError, ErrorKind
from resilink.retry import AsyncRetryExecutor, RetryConfig, RetryStateStore
from resilink.utils.structured_logging import get_operation_context


def test_async_retry_executor_creation() -> None:
    config = RetryConfig(max_attempts=5, jitter_factor=0.0)
    executor = AsyncRetryExecutor(config)
    assert executor.config is config
    assert executor.strategy is not None
    assert executor.classifier is not None
    assert executor.callbacks is not None
    assert isinstance(executor.state, RetryStateStore)
    assert executor.circuit_breakers is None


def test_async_retry_executor_default_config() -> None:
    assert AsyncRetryExecutor().config.max_attempts == 3


##########################################
#     Tests for successful execution     #
##########################################


@pytest.mark.asyncio
async def test_execute_success_first_attempt(
    executor: AsyncRetryExecutor, state: RetryStateStore
) -> None:
    operation = AsyncMock(return_value={"posts": []})
    assert await executor.execute(operation, "loadFeed") == {"posts": []}
    operation.assert_awaited_once()
    assert state.get("loadFeed") == 0


@pytest.mark.asyncio
async def test_execute_retries_then_succeeds(
    executor: AsyncRetryExecutor, state: RetryStateStore
) -> None:
    """Test that a retryable failure is retried and the counter is reset
    on success."""
    operation = AsyncMock(side_effect=[httpx.ConnectError("refused"), TimeoutError(), "ok"])
    assert await executor.execute(operation, "loadFeed") == "ok"
    assert operation.await_count == 3
    assert state.get("loadFeed") == 0


@pytest.mark.asyncio
async def test_execute_sets_operation_context(executor: AsyncRetryExecutor) -> None:
    async def operation() -> str | None:
        return get_operation_context()

    assert await executor.execute(operation, "likePost:123") == "likePost:123"
    assert get_operation_context() is None


@pytest.mark.asyncio
async def test_execute_backoff_delays(mock_asleep: Mock) -> None:
    """Test that the delays follow the exponential backoff without
    jitter."""
    executor = AsyncRetryExecutor(RetryConfig(max_attempts=4, jitter_factor=0.0))
    operation = AsyncMock(side_effect=[TimeoutError(), TimeoutError(), TimeoutError(), "ok"])
    assert await executor.execute(operation, "loadFeed") == "ok"
    assert mock_asleep.call_args_list == [call(1.0), call(2.0), call(4.0)]


@pytest.mark.asyncio
async def test_execute_backoff_delays_with_jitter(mock_asleep: Mock) -> None:
    """Test that jittered delays stay within [base, 1.1 * base]."""
    executor = AsyncRetryExecutor(RetryConfig(max_attempts=3, jitter_factor=0.1))
    operation = AsyncMock(side_effect=[TimeoutError(), TimeoutError(), "ok"])
    await executor.execute(operation, "loadFeed")
    first, second = (c.args[0] for c in mock_asleep.call_args_list)
    assert 1.0 <= first <= 1.1 + 1e-9
    assert 2.0 <= second <= 2.2 + 1e-9


#######################################
#     Tests for terminal failures     #
#######################################


@pytest.mark.asyncio
async def test_execute_non_retryable_error_raised_immediately(
    executor: AsyncRetryExecutor,
) -> None:
    error = AppError.validation_error("Weight must be positive")
    operation = AsyncMock(side_effect=error)
    with pytest.raises(AppError) as exc_info:
        await executor.execute(operation, "logWeight")
    assert exc_info.value is error
    operation.assert_awaited_once()


@pytest.mark.asyncio
async def test_execute_raw_error_classified(executor: AsyncRetryExecutor) -> None:
    """Test that a raw non-retryable failure is raised as a classified
    error chained to it."""
    raw = KeyError("missing")
    operation = AsyncMock(side_effect=raw)
    with pytest.raises(AppError) as exc_info:
        await executor.execute(operation, "loadProfile")
    assert exc_info.value.kind == ErrorKind.UNKNOWN
    assert exc_info.value.__cause__ is raw
    operation.assert_awaited_once()


@pytest.mark.asyncio
async def test_execute_max_retries_exceeded(
    executor: AsyncRetryExecutor, state: RetryStateStore
) -> None:
    operation = AsyncMock(side_effect=TimeoutError())
    with pytest.raises(AppError) as exc_info:
        await executor.execute(operation, "loadFeed")

    error = exc_info.value
    assert error.kind == ErrorKind.MAX_RETRIES_EXCEEDED
    assert error.message == "Max retries exceeded for loadFeed: Request timed out. Please try again."
    assert error.context == "loadFeed"
    assert isinstance(error.__cause__, AppError)
    assert error.__cause__.kind == ErrorKind.TIMEOUT
    assert operation.await_count == 3
    assert state.get("loadFeed") == 3


@pytest.mark.asyncio
async def test_execute_counter_capped_across_calls(
    executor: AsyncRetryExecutor, state: RetryStateStore
) -> None:
    """Test that the retry counter never exceeds max_attempts."""
    operation = AsyncMock(side_effect=TimeoutError())
    for _ in range(3):
        with pytest.raises(AppError):
            await executor.execute(operation, "loadFeed")
    assert state.get("loadFeed") == 3


@pytest.mark.asyncio
async def test_execute_max_attempts_override(executor: AsyncRetryExecutor) -> None:
    operation = AsyncMock(side_effect=TimeoutError())
    with pytest.raises(AppError, match=r"Max retries exceeded for loadFeed"):
        await executor.execute(operation, "loadFeed", max_attempts=1)
    operation.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("max_attempts", [0, -1])
async def test_execute_invalid_max_attempts(executor: AsyncRetryExecutor, max_attempts: int) -> None:
    """Test that invalid max_attempts fails before anything runs."""
    operation = AsyncMock(return_value="ok")
    with pytest.raises(ConfigurationError, match=r"max_attempts must be >= 1"):
        await executor.execute(operation, "loadFeed", max_attempts=max_attempts)
    operation.assert_not_called()


@pytest.mark.asyncio
async def test_execute_retry_if_override(executor: AsyncRetryExecutor) -> None:
    """Test that retry_if can make a non-retryable kind retryable."""
    operation = AsyncMock(side_effect=AppError.validation_error("stale revision"))
    with pytest.raises(AppError) as exc_info:
        await executor.execute(operation, "saveWorkout", retry_if=lambda error: True)
    assert exc_info.value.kind == ErrorKind.MAX_RETRIES_EXCEEDED
    assert operation.await_count == 3


@pytest.mark.asyncio
async def test_execute_retry_if_disables_retry(executor: AsyncRetryExecutor) -> None:
    operation = AsyncMock(side_effect=TimeoutError())
    with pytest.raises(AppError) as exc_info:
        await executor.execute(operation, "loadFeed", retry_if=lambda error: False)
    assert exc_info.value.kind == ErrorKind.TIMEOUT
    operation.assert_awaited_once()


################################
#     Tests for callbacks      #
################################


@pytest.mark.asyncio
async def test_execute_callbacks_on_exhaustion() -> None:
    on_retry, on_success, on_failure = Mock(), Mock(), Mock()
    executor = AsyncRetryExecutor(
        RetryConfig(
            max_attempts=3,
            jitter_factor=0.0,
            backoff_strategy=ConstantBackoff(0.0),
            on_retry=on_retry,
            on_success=on_success,
            on_failure=on_failure,
        )
    )
    with pytest.raises(AppError):
        await executor.execute(AsyncMock(side_effect=TimeoutError()), "loadFeed")

    assert [c.args[0].attempt for c in on_retry.call_args_list] == [2, 3]
    on_success.assert_not_called()
    info = on_failure.call_args.args[0]
    assert info.attempt == 3
    assert info.error.kind == ErrorKind.MAX_RETRIES_EXCEEDED


@pytest.mark.asyncio
async def test_execute_callbacks_on_success(mock_callback: Mock) -> None:
    executor = AsyncRetryExecutor(
        RetryConfig(jitter_factor=0.0, backoff_strategy=ConstantBackoff(0.0), on_success=mock_callback)
    )
    await executor.execute(AsyncMock(side_effect=[TimeoutError(), "ok"]), "loadFeed")
    info = mock_callback.call_args.args[0]
    assert info.context == "loadFeed"
    assert info.attempt == 2


@pytest.mark.asyncio
async def test_execute_callback_error_propagates() -> None:
    def on_success(info: object) -> None:
        msg = "callback failed"
        raise RuntimeError(msg)

    executor = AsyncRetryExecutor(RetryConfig(on_success=on_success))
    with pytest.raises(RuntimeError, match=r"callback failed"):
        await executor.execute(AsyncMock(return_value="ok"), "loadFeed")


##############################################
#     Tests for circuit breaker integration  #
##############################################


@pytest.mark.asyncio
async def test_execute_circuit_opens_during_retries(
    executor: AsyncRetryExecutor, registry: CircuitBreakerRegistry
) -> None:
    """Test that the breaker is checked before every attempt and an open
    circuit is not retried."""
    operation = AsyncMock(side_effect=ConnectionRefusedError())
    with pytest.raises(CircuitBreakerError) as exc_info:
        await executor.execute(operation, "loadFeed", service="feed")

    assert exc_info.value.kind == ErrorKind.SERVER_ERROR
    assert exc_info.value.message == "feed is temporarily unavailable"
    assert operation.await_count == 2
    assert registry.state("feed") == CircuitState.OPEN


@pytest.mark.asyncio
async def test_execute_open_circuit_fails_fast(
    executor: AsyncRetryExecutor, registry: CircuitBreakerRegistry
) -> None:
    registry.get("feed").record_failure()
    registry.get("feed").record_failure()
    operation = AsyncMock(return_value="ok")
    with pytest.raises(CircuitBreakerError):
        await executor.execute(operation, "loadFeed", service="feed")
    operation.assert_not_called()


@pytest.mark.asyncio
async def test_execute_success_resets_breaker(
    executor: AsyncRetryExecutor, registry: CircuitBreakerRegistry
) -> None:
    operation = AsyncMock(side_effect=[TimeoutError(), "ok"])
    assert await executor.execute(operation, "loadFeed", service="feed") == "ok"
    assert registry.get("feed").failure_count == 0
    assert registry.state("feed") == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_execute_without_service_ignores_breakers(
    executor: AsyncRetryExecutor, registry: CircuitBreakerRegistry
) -> None:
    with pytest.raises(AppError):
        await executor.execute(AsyncMock(side_effect=TimeoutError()), "loadFeed")
    assert repr(registry) == "CircuitBreakerRegistry(services=[])"


#################################
#     Tests for concurrency     #
#################################


@pytest.mark.asyncio
async def test_execute_token_cancels_backoff_sleep() -> None:
    executor = AsyncRetryExecutor(
        RetryConfig(jitter_factor=0.0, backoff_strategy=ConstantBackoff(10.0))
    )
    token = CancellationToken()
    asyncio.get_running_loop().call_later(0.01, token.cancel)
    operation = AsyncMock(side_effect=TimeoutError())
    with pytest.raises(asyncio.CancelledError):
        await executor.execute(operation, "loadFeed", token=token)
    operation.assert_awaited_once()


@pytest.mark.asyncio
async def test_execute_cancelled_token_before_start(executor: AsyncRetryExecutor) -> None:
    token = CancellationToken()
    token.cancel()
    operation = AsyncMock(return_value="ok")
    with pytest.raises(asyncio.CancelledError):
        await executor.execute(operation, "loadFeed", token=token)
    operation.assert_not_called()


@pytest.mark.asyncio
async def test_execute_task_cancellation_propagates(executor: AsyncRetryExecutor) -> None:
    started = asyncio.Event()

    async def operation() -> str:
        started.set()
        await asyncio.Event().wait()
        return "never"

    task = asyncio.create_task(executor.execute(operation, "loadFeed"))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_execute_different_contexts_do_not_block(executor: AsyncRetryExecutor) -> None:
    """Test that concurrent calls for different contexts interleave."""
    first_started = asyncio.Event()

    async def first() -> str:
        first_started.set()
        await second_done.wait()
        return "first"

    second_done = asyncio.Event()

    async def second() -> str:
        await first_started.wait()
        second_done.set()
        return "second"

    results = await asyncio.wait_for(
        asyncio.gather(
            executor.execute(first, "loadFeed"),
            executor.execute(second, "likePost:1"),
        ),
        timeout=1.0,
    )
    assert results == ["first", "second"]
