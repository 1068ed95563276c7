r"""Unit tests for the backoff delay calculation."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from resilink.backoff import ConstantBackoff, ExponentialBackoff
from resilink.utils import calculate_delay

#####################################
#     Tests for calculate_delay     #
#####################################


@pytest.mark.parametrize(("attempt", "expected"), [(0, 1.0), (1, 2.0), (2, 4.0), (3, 8.0)])
def test_calculate_delay_without_jitter(attempt: int, expected: float) -> None:
    """Test the default exponential delay without jitter."""
    assert calculate_delay(attempt=attempt, jitter_factor=0.0) == expected


def test_calculate_delay_default_strategy_capped() -> None:
    """Test that the default strategy is capped at 30 seconds."""
    assert calculate_delay(attempt=10, jitter_factor=0.0) == 30.0


@pytest.mark.parametrize("attempt", [0, 1, 2, 3, 4])
def test_calculate_delay_jitter_bounds(attempt: int) -> None:
    """Test that the jittered delay lies in [base, 1.1 * base]."""
    base = 2.0**attempt
    for _ in range(50):
        delay = calculate_delay(attempt=attempt, jitter_factor=0.1)
        assert base <= delay <= 1.1 * base + 1e-9


def test_calculate_delay_jitter_uses_random_uniform() -> None:
    """Test that jitter is uniform(0, jitter_factor) times the base
    delay."""
    with patch("resilink.utils.delay.random.uniform", return_value=0.05) as mock_uniform:
        delay = calculate_delay(attempt=2, jitter_factor=0.1)
    mock_uniform.assert_called_once_with(0, 0.1)
    assert delay == pytest.approx(4.2)


def test_calculate_delay_total_clamped_to_max_delay() -> None:
    """Test that the jittered total never exceeds max_delay."""
    with patch("resilink.utils.delay.random.uniform", return_value=0.1):
        delay = calculate_delay(
            attempt=5,
            jitter_factor=0.1,
            backoff_strategy=ExponentialBackoff(),
            max_delay=30.0,
        )
    assert delay == 30.0


def test_calculate_delay_custom_strategy() -> None:
    """Test that a custom backoff strategy is used."""
    assert calculate_delay(attempt=7, jitter_factor=0.0, backoff_strategy=ConstantBackoff(0.5)) == 0.5


def test_calculate_delay_max_delay_below_base() -> None:
    """Test max_delay smaller than the strategy delay."""
    assert calculate_delay(attempt=3, jitter_factor=0.0, max_delay=3.0) == 3.0
