"""
Retry policy with exponential backoff.

The decision is a pure function of (error, attempt) so it can be tested
without a clock; `call_with_retry` applies it around one network stage.
Only transient failures are retried. Rate limiting is terminal within a run.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from core.errors import TransientError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    delay: float = 0.0


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff.

    Args:
        max_attempts: Total attempts including the first one
        base_delay: Delay after the first failed attempt (seconds)
        max_delay: Cap for any single delay (seconds)
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0

    def decide(self, error: BaseException, attempt: int) -> RetryDecision:
        """`attempt` is the 1-based number of the attempt that just failed."""

        if not isinstance(error, TransientError):
            return RetryDecision(retry=False)
        if attempt >= self.max_attempts:
            return RetryDecision(retry=False)
        delay = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        return RetryDecision(retry=True, delay=delay)


NO_RETRY = RetryPolicy(max_attempts=1)


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    **log_context: object,
) -> T:
    """
    Run `operation` until it succeeds or `policy` says stop.

    Raises:
        Exception: the last error once the policy declines another attempt
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except TransientError as exc:
            decision = policy.decide(exc, attempt)
            if not decision.retry:
                logger.warning(
                    "retry_exhausted",
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    error=str(exc),
                    **log_context,
                )
                raise
            logger.info(
                "retry_attempt",
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay=decision.delay,
                error=str(exc),
                **log_context,
            )
            await sleep(decision.delay)
