from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from authcore.domain.entities import RevokedToken


class RevocationRepositoryPort(Protocol):
    async def insert(self, record: RevokedToken, *, reason: str | None = None) -> bool:
        """
        Insert a revoked-token record if its jti is not stored yet.
        Return True if this call inserted it, False if it already existed.
        """

    async def get(self, jti: str) -> Optional[RevokedToken]:
        """Return the durable record for jti, expired or not, or None."""

    async def purge_expired(self, now: datetime) -> int:
        """Delete records whose expires_at is before `now`; return the count."""
