"""Bounded retries for cooperative replay tasks, using pure asyncio.

There is no cancellation API: every wait is bounded by an attempt count or
a timeout.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from transformcache.config import ReplayConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    delay: float = 2.0
    initial_delay: float = 1.0

    @classmethod
    def from_config(cls, config: ReplayConfig) -> RetryPolicy:
        return cls(
            max_attempts=max(1, config.max_attempts),
            delay=config.retry_delay,
            initial_delay=config.initial_delay,
        )


@dataclass
class RetryOutcome(Generic[T]):
    result: T | None
    attempts: int
    succeeded: bool


async def run_with_retries(
    label: str,
    attempt: Callable[[], Awaitable[T]],
    accept: Callable[[T], bool],
    policy: RetryPolicy,
) -> RetryOutcome[T]:
    """Run ``attempt`` until ``accept`` passes or attempts run out.

    Exceptions from an attempt are logged and count as a failed attempt.
    The last result is returned even when it was never accepted.
    """
    if policy.initial_delay > 0:
        await asyncio.sleep(policy.initial_delay)

    result: T | None = None
    for n in range(1, policy.max_attempts + 1):
        try:
            result = await attempt()
            if accept(result):
                if n > 1:
                    logger.info("%s succeeded on attempt %d", label, n)
                return RetryOutcome(result, n, True)
            logger.warning("%s attempt %d/%d not accepted", label, n, policy.max_attempts)
        except Exception as e:
            logger.error("%s attempt %d/%d failed: %s", label, n, policy.max_attempts, e)
        if n < policy.max_attempts and policy.delay > 0:
            await asyncio.sleep(policy.delay)

    logger.warning("%s gave up after %d attempts", label, policy.max_attempts)
    return RetryOutcome(result, policy.max_attempts, False)
