from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import Mock, patch

import pytest

from resilink.backoff import ConstantBackoff
from resilink.circuit_breaker import CircuitBreakerRegistry
from resilink.connectivity import ConnectivityMonitor
from resilink.offline_queue import InMemoryQueueStorage
from resilink.retry import AsyncRetryExecutor, RetryConfig, RetryStateStore

if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture
def mock_asleep() -> Generator[Mock, None, None]:
    """Patch asyncio.sleep to make tests run faster."""
    with patch("asyncio.sleep", return_value=None) as mock:
        yield mock


@pytest.fixture
def mock_callback() -> Mock:
    """Create a mock callback function for testing callbacks."""
    return Mock()


@pytest.fixture
def monitor() -> ConnectivityMonitor:
    """Create a connectivity monitor without probe, initially online."""
    return ConnectivityMonitor()


@pytest.fixture
def storage() -> InMemoryQueueStorage:
    """Create an empty in-memory queue storage."""
    return InMemoryQueueStorage()


@pytest.fixture
def registry() -> CircuitBreakerRegistry:
    """Create a circuit breaker registry opening after 2 failures."""
    return CircuitBreakerRegistry(failure_threshold=2, recovery_timeout=30.0)


@pytest.fixture
def state() -> RetryStateStore:
    """Create an empty retry state store."""
    return RetryStateStore()


@pytest.fixture
def executor(state: RetryStateStore, registry: CircuitBreakerRegistry) -> AsyncRetryExecutor:
    """Create a retry executor that retries without waiting."""
    return AsyncRetryExecutor(
        RetryConfig(max_attempts=3, jitter_factor=0.0, backoff_strategy=ConstantBackoff(0.0)),
        state=state,
        circuit_breakers=registry,
    )
