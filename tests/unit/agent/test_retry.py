"""Tests for the retry executor."""

import pytest

from edge_ai_dispatch.config.schemas import RetryConfig
from edge_ai_dispatch.core.exceptions import AIError, AIErrorCode
from edge_ai_dispatch.agent.retry import RetryPolicy, with_retry


class FlakyCall:
    """Fails with the queued errors, then returns ``value``."""

    def __init__(self, errors, value="done"):
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


FAST = RetryPolicy(retries=2, base_delay_ms=0, max_delay_ms=0, jitter_ms=0)


async def test_retryable_error_uses_every_attempt(no_sleep):
    call = FlakyCall([RuntimeError("fetch failed")] * 5)
    with pytest.raises(AIError) as exc_info:
        await with_retry(call, model="m", policy=FAST, sleep=no_sleep)

    assert call.calls == 3
    assert len(no_sleep.calls) == 2
    assert exc_info.value.code is AIErrorCode.NETWORK_ERROR
    assert exc_info.value.message == "Attempt 3: fetch failed"


async def test_terminal_error_is_not_retried(no_sleep):
    call = FlakyCall([RuntimeError("401 Unauthorized")])
    with pytest.raises(AIError) as exc_info:
        await with_retry(call, model="m", provider="openai", policy=FAST, sleep=no_sleep)

    assert call.calls == 1
    assert no_sleep.calls == []
    assert exc_info.value.code is AIErrorCode.AUTH_ERROR
    assert exc_info.value.provider == "openai"


async def test_typed_error_is_reraised_unchanged(no_sleep):
    original = AIError("bad shape", AIErrorCode.INVALID_RESPONSE)
    call = FlakyCall([original])
    with pytest.raises(AIError) as exc_info:
        await with_retry(call, policy=FAST, sleep=no_sleep)
    assert exc_info.value is original


async def test_success_after_retry_reports_attempts(no_sleep):
    call = FlakyCall([RuntimeError("rate limit")])
    outcome = await with_retry(call, policy=FAST, sleep=no_sleep)
    assert outcome.value == "done"
    assert outcome.attempts == 2


async def test_zero_retries_means_one_attempt(no_sleep):
    call = FlakyCall([RuntimeError("timeout")])
    with pytest.raises(AIError):
        await with_retry(call, policy=FAST.with_retries(0), sleep=no_sleep)
    assert call.calls == 1


def test_backoff_is_exponential_and_capped():
    policy = RetryPolicy(base_delay_ms=100, max_delay_ms=500, jitter_ms=0)
    assert [policy.backoff_ms(n) for n in range(4)] == [100, 200, 400, 500]


def test_backoff_jitter_stays_in_bounds():
    policy = RetryPolicy(base_delay_ms=100, max_delay_ms=10000, jitter_ms=50)
    for _ in range(20):
        assert 100 <= policy.backoff_ms(0) <= 150


def test_policy_from_config():
    config = RetryConfig(base_delay_ms=5, max_delay_ms=50, jitter_ms=0, retry_on=[AIErrorCode.TIMEOUT])
    policy = RetryPolicy.from_config(config, retries=4)
    assert policy.max_attempts == 5
    timeout = AIError("t", AIErrorCode.TIMEOUT)
    limited = AIError("r", AIErrorCode.RATE_LIMITED)
    assert policy.should_retry(timeout, 0)
    assert not policy.should_retry(limited, 0)
    assert not policy.should_retry(timeout, 4)


def test_negative_retries_rejected():
    with pytest.raises(ValueError):
        RetryPolicy(retries=-1)
