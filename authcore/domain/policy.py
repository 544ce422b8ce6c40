from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenPolicy:
    access_ttl_seconds: int = 15 * 60
    refresh_ttl_seconds: int = 7 * 24 * 3600
    remember_me_ttl_seconds: int = 30 * 24 * 3600

    def lifetime(self, kind: str, *, remember_me: bool = False) -> int:
        if kind == "access":
            return self.access_ttl_seconds
        if kind == "refresh":
            return self.remember_me_ttl_seconds if remember_me else self.refresh_ttl_seconds
        raise ValueError(f"unknown token kind: {kind}")


@dataclass(frozen=True)
class LockoutPolicy:
    channel: str
    max_failures: int
    lockout_seconds: int


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    base: float = 0.05  # base delay (seconds)
    max_delay: float = 1.0  # cap (seconds)

    def compute_delay(self, attempt: int) -> float:
        # attempt is the number of attempts already made
        delay = self.base * (2**attempt)
        return delay if delay < self.max_delay else self.max_delay
