from typing import Protocol

from authcore.domain.entities import AttemptState


class AttemptCounterPort(Protocol):
    async def register_failure(
        self, key: str, max_failures: int, lockout_seconds: int
    ) -> AttemptState:
        """
        Atomically count one failure for key. When the count reaches
        max_failures, start a lockout of lockout_seconds and reset the count.
        If key is already locked, nothing is counted.
        """

    async def lockout_remaining(self, key: str) -> int:
        """Seconds left on the lockout of key, 0 if not locked."""

    async def clear(self, key: str) -> None:
        """Forget failures recorded for key (does not lift an active lockout)."""
