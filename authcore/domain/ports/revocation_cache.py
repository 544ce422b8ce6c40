from typing import Protocol


class RevocationCachePort(Protocol):
    async def mark_revoked(self, jti: str, kind: str, ttl_seconds: int) -> None:
        """Store/replace the revocation marker with TTL=ttl_seconds."""

    async def mark_revoked_if_absent(self, jti: str, kind: str, ttl_seconds: int) -> bool:
        """Set-if-absent. True if this call created the marker."""

    async def is_revoked(self, jti: str) -> bool:
        """True if a marker exists. Transport failures must raise, not return False."""

    async def release(self, jti: str) -> None:
        """Delete a marker created by mark_revoked_if_absent."""
