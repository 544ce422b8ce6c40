from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from authcore.domain.errors import DependencyUnavailable
from authcore.domain.policy import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    timeout: float,
    what: str,
) -> T:
    """
    Run `operation` with a per-attempt timeout, retrying transient failures
    (DependencyUnavailable, timeouts) with exponential backoff.

    Raises DependencyUnavailable once policy.attempts are exhausted.
    """
    attempts = max(policy.attempts, 1)
    last_exc: Exception | None = None
    for attempt in range(attempts):
        try:
            return await asyncio.wait_for(operation(), timeout)
        except (DependencyUnavailable, asyncio.TimeoutError) as e:
            last_exc = e
            if attempt + 1 >= attempts:
                break
            delay = policy.compute_delay(attempt)
            logger.warning(
                "dependency call failed; retrying",
                extra={
                    "what": what,
                    "attempt": attempt + 1,
                    "retry_in_s": delay,
                    "error": repr(e),
                },
            )
            await asyncio.sleep(delay)

    raise DependencyUnavailable(f"{what}: retries exhausted") from last_exc
