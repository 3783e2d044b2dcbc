"""Tests for RetryPolicy."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from hbase_river.retry import RetryPolicy


def test_default_policy_never_retries() -> None:
    policy = RetryPolicy()

    assert not policy.should_retry(1)


def test_should_retry_until_max_attempts() -> None:
    policy = RetryPolicy(max_attempts=3)

    assert policy.should_retry(1)
    assert policy.should_retry(2)
    assert not policy.should_retry(3)
    assert not policy.should_retry(0)


def test_delay_grows_exponentially_and_is_capped() -> None:
    policy = RetryPolicy(max_attempts=10, base_delay=1.0, max_delay=5.0, jitter=False)

    assert policy.delay_for_attempt(1) == 1.0
    assert policy.delay_for_attempt(2) == 2.0
    assert policy.delay_for_attempt(3) == 4.0
    assert policy.delay_for_attempt(4) == 5.0
    assert policy.delay_for_attempt(0) == 0.0


def test_jitter_stays_within_half_and_one_and_a_half() -> None:
    policy = RetryPolicy(max_attempts=3, base_delay=2.0, max_delay=10.0, jitter=True)

    for _ in range(50):
        assert 1.0 <= policy.delay_for_attempt(1) <= 3.0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_attempts": 0},
        {"base_delay": -1.0},
        {"base_delay": 5.0, "max_delay": 1.0},
    ],
)
def test_invalid_policy(kwargs: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_wait_before_retry_sleeps_for_delay() -> None:
    policy = RetryPolicy(max_attempts=2, base_delay=0.25, jitter=False)

    with patch("hbase_river.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        await policy.wait_before_retry(1)

    sleep.assert_awaited_once_with(0.25)
