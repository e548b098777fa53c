"""Retry executor with bounded exponential backoff."""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import Generic, TypeVar

from edge_ai_dispatch.config.schemas import RetryConfig
from edge_ai_dispatch.core.exceptions import AIError, AIErrorCode
from edge_ai_dispatch.providers.classifier import classify_error
from edge_ai_dispatch.utils.logging import get_logger

logger = get_logger("agent.retry")

T = TypeVar("T")

DEFAULT_RETRY_ON = frozenset(
    {AIErrorCode.RATE_LIMITED, AIErrorCode.TIMEOUT, AIErrorCode.NETWORK_ERROR}
)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry, which codes qualify, and how long to wait."""

    retries: int = 2
    base_delay_ms: float = 1000
    max_delay_ms: float = 10000
    jitter_ms: float = 100
    retry_on: frozenset[AIErrorCode] = field(default=DEFAULT_RETRY_ON)

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ValueError("retries must be >= 0")

    @classmethod
    def from_config(cls, config: RetryConfig, retries: int = 2) -> "RetryPolicy":
        return cls(
            retries=retries,
            base_delay_ms=config.base_delay_ms,
            max_delay_ms=config.max_delay_ms,
            jitter_ms=config.jitter_ms,
            retry_on=frozenset(config.retry_on),
        )

    def with_retries(self, retries: int) -> "RetryPolicy":
        return replace(self, retries=retries)

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def should_retry(self, error: AIError, attempt: int) -> bool:
        """``attempt`` is the 0-indexed attempt that just failed."""
        return attempt < self.retries and error.code in self.retry_on

    def backoff_ms(self, attempt: int) -> float:
        jitter = random.uniform(0, self.jitter_ms) if self.jitter_ms else 0.0
        return min(self.base_delay_ms * (2**attempt) + jitter, self.max_delay_ms)


@dataclass
class RetryOutcome(Generic[T]):
    value: T
    attempts: int


SleepFn = Callable[[float], Awaitable[object]]


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    model: str | None = None,
    provider: str | None = None,
    policy: RetryPolicy | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> RetryOutcome[T]:
    """Call ``fn`` until it succeeds, fails terminally, or attempts run out.

    Every failure is classified. The last classified error is raised once
    the attempt budget is spent.
    """
    policy = policy or RetryPolicy()

    for attempt in range(policy.max_attempts):
        try:
            value = await fn()
        except Exception as e:
            error = classify_error(
                e, model, context=f"Attempt {attempt + 1}", provider=provider
            )
            if error.provider is None:
                error.provider = provider
            if not policy.should_retry(error, attempt):
                if error is e:
                    raise
                raise error from e

            delay_ms = policy.backoff_ms(attempt)
            logger.warning(
                f"Retrying {model or 'request'} after {error.code.value} "
                f"(attempt {attempt + 1}/{policy.max_attempts}) in {delay_ms:.0f}ms"
            )
            await sleep(delay_ms / 1000)
        else:
            return RetryOutcome(value=value, attempts=attempt + 1)

    # range(max_attempts) always returns or raises
    raise AssertionError("unreachable")

