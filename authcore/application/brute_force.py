from __future__ import annotations

import logging

from authcore.application.retry import call_with_retry
from authcore.domain.entities import AttemptState
from authcore.domain.errors import LockedOut
from authcore.domain.policy import LockoutPolicy, RetryPolicy
from authcore.domain.ports.attempt_counter import AttemptCounterPort

logger = logging.getLogger(__name__)


class BruteForceGuard:
    """
    Failed-attempt counting and time-boxed lockout for one channel.

    Keys are whatever the caller was given (an email, a principal id), never
    the result of an account lookup, so lockout state leaks nothing about
    which accounts exist.
    """

    def __init__(
        self,
        counter: AttemptCounterPort,
        policy: LockoutPolicy,
        *,
        retry_policy: RetryPolicy | None = None,
        timeout: float = 2.0,
    ) -> None:
        self._counter = counter
        self.policy = policy
        self._retry = retry_policy or RetryPolicy(attempts=2)
        self._timeout = timeout

    def key(self, subject: str) -> str:
        return f"{self.policy.channel}:{subject}"

    async def lockout_remaining(self, subject: str) -> int:
        key = self.key(subject)
        return await call_with_retry(
            lambda: self._counter.lockout_remaining(key),
            policy=self._retry,
            timeout=self._timeout,
            what="lockout lookup",
        )

    async def is_locked(self, subject: str) -> bool:
        return await self.lockout_remaining(subject) > 0

    async def ensure_not_locked(self, subject: str) -> None:
        remaining = await self.lockout_remaining(subject)
        if remaining > 0:
            raise LockedOut(retry_after=remaining)

    async def record_failure(self, subject: str) -> AttemptState:
        key = self.key(subject)
        state = await call_with_retry(
            lambda: self._counter.register_failure(
                key, self.policy.max_failures, self.policy.lockout_seconds
            ),
            policy=self._retry,
            timeout=self._timeout,
            what="lockout failure count",
        )
        if state.locked and state.count >= self.policy.max_failures:
            logger.warning(
                "lockout triggered",
                extra={
                    "channel": self.policy.channel,
                    "attempts": state.count,
                    "retry_after": state.retry_after,
                },
            )
        return state

    async def record_success(self, subject: str) -> None:
        key = self.key(subject)
        await call_with_retry(
            lambda: self._counter.clear(key),
            policy=self._retry,
            timeout=self._timeout,
            what="lockout reset",
        )
