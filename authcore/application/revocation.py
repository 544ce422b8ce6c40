from __future__ import annotations

import asyncio
import enum
import logging
from datetime import datetime
from typing import Callable

from authcore.application.retry import call_with_retry
from authcore.domain.entities import RevokedToken, TokenKind
from authcore.domain.errors import DependencyUnavailable
from authcore.domain.policy import RetryPolicy
from authcore.domain.ports.revocation_cache import RevocationCachePort
from authcore.domain.ports.unit_of_work import UnitOfWorkPort
from authcore.domain.services import remaining_ttl_seconds, utcnow

logger = logging.getLogger(__name__)


class RevocationStatus(str, enum.Enum):
    REVOKED = "revoked"
    NOT_REVOKED = "not_revoked"
    UNKNOWN = "unknown"


class RevocationRegistry:
    """
    Token identifiers that must no longer be honored.

    The Redis cache answers fast checks; the durable table is the recovery
    copy. The two are reconciled on a cache miss (read-through), never
    written in one transaction.
    """

    def __init__(
        self,
        *,
        cache: RevocationCachePort,
        uow_factory: Callable[[], UnitOfWorkPort],
        retry_policy: RetryPolicy | None = None,
        lookup_retry_policy: RetryPolicy | None = None,
        timeout: float = 2.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._cache = cache
        self._uow_factory = uow_factory
        self._retry = retry_policy or RetryPolicy()
        self._lookup_retry = lookup_retry_policy or RetryPolicy(attempts=2)
        self._timeout = timeout
        self._clock = clock

    async def revoke(
        self,
        jti: str,
        kind: TokenKind,
        expires_at: datetime,
        *,
        reason: str = "logout",
    ) -> None:
        ttl = remaining_ttl_seconds(expires_at, self._clock())
        if ttl == 0:
            # already unusable; nothing to remember
            return

        try:
            await call_with_retry(
                lambda: self._cache.mark_revoked(jti, kind, ttl),
                policy=self._lookup_retry,
                timeout=self._timeout,
                what="revocation cache write",
            )
        except DependencyUnavailable:
            # durable copy below still heals the cache on the next miss
            logger.warning("revocation cache write failed", extra={"jti": jti})

        record = RevokedToken(jti=jti, kind=kind, expires_at=expires_at)
        await call_with_retry(
            lambda: self._insert_durable(record, reason),
            policy=self._retry,
            timeout=self._timeout,
            what="revocation durable write",
        )
        logger.info(
            "token revoked", extra={"jti": jti, "kind": kind, "reason": reason}
        )

    async def claim(
        self,
        jti: str,
        kind: TokenKind,
        expires_at: datetime,
        *,
        reason: str = "rotated",
    ) -> bool:
        """
        Revoke jti only if nobody revoked it before. Exactly one of several
        concurrent claims for the same jti returns True.

        The durable write is acknowledged before this returns True; if it
        cannot be made the cache claim is released and DependencyUnavailable
        propagates.
        """
        ttl = max(remaining_ttl_seconds(expires_at, self._clock()), 1)

        created = await call_with_retry(
            lambda: self._cache.mark_revoked_if_absent(jti, kind, ttl),
            policy=self._lookup_retry,
            timeout=self._timeout,
            what="revocation cache claim",
        )
        if not created:
            return False

        record = RevokedToken(jti=jti, kind=kind, expires_at=expires_at)
        attempts = 0

        async def _insert_claimed() -> bool:
            nonlocal attempts
            attempts += 1
            first_attempt = attempts == 1
            inserted = await self._insert_durable(record, reason)
            if not inserted and not first_attempt:
                # an earlier attempt may have committed before timing out;
                # the cache claim above is ours, so the row is too
                logger.info(
                    "durable claim already present after retry", extra={"jti": jti}
                )
                return True
            return inserted

        try:
            inserted = await call_with_retry(
                _insert_claimed,
                policy=self._retry,
                timeout=self._timeout,
                what="revocation durable write",
            )
        except DependencyUnavailable:
            await self._release_quietly(jti)
            raise
        return inserted

    async def lookup(self, jti: str) -> RevocationStatus:
        try:
            cached = await call_with_retry(
                lambda: self._cache.is_revoked(jti),
                policy=self._lookup_retry,
                timeout=self._timeout,
                what="revocation cache lookup",
            )
        except DependencyUnavailable:
            logger.error("revocation cache unreachable; failing secure", extra={"jti": jti})
            return RevocationStatus.UNKNOWN
        if cached:
            return RevocationStatus.REVOKED

        try:
            record = await call_with_retry(
                lambda: self._get_durable(jti),
                policy=self._lookup_retry,
                timeout=self._timeout,
                what="revocation durable lookup",
            )
        except DependencyUnavailable:
            logger.error("revocation store unreachable; failing secure", extra={"jti": jti})
            return RevocationStatus.UNKNOWN
        if record is None:
            return RevocationStatus.NOT_REVOKED

        ttl = remaining_ttl_seconds(record.expires_at, self._clock())
        if ttl == 0:
            # the token itself has expired; the row is only waiting for purge
            return RevocationStatus.NOT_REVOKED
        await self._heal_cache(record, ttl)
        return RevocationStatus.REVOKED

    async def is_revoked(self, jti: str) -> bool:
        return await self.lookup(jti) is not RevocationStatus.NOT_REVOKED

    async def purge_expired(self) -> int:
        now = self._clock()

        async def _purge() -> int:
            async with self._uow_factory() as tx:
                deleted = await tx.revocations.purge_expired(now)
                await tx.commit()
                return deleted

        deleted = await call_with_retry(
            _purge, policy=self._retry, timeout=self._timeout * 10, what="revocation purge"
        )
        logger.info("purged expired revocations", extra={"count": deleted})
        return deleted

    async def _insert_durable(self, record: RevokedToken, reason: str) -> bool:
        async with self._uow_factory() as tx:
            inserted = await tx.revocations.insert(record, reason=reason)
            await tx.commit()
            return inserted

    async def _get_durable(self, jti: str) -> RevokedToken | None:
        async with self._uow_factory() as tx:
            return await tx.revocations.get(jti)

    async def _heal_cache(self, record: RevokedToken, ttl: int) -> None:
        try:
            await asyncio.wait_for(
                self._cache.mark_revoked(record.jti, record.kind, ttl), self._timeout
            )
        except (DependencyUnavailable, asyncio.TimeoutError):
            logger.warning("could not re-populate revocation cache", extra={"jti": record.jti})
        else:
            logger.info("revocation cache healed from durable store", extra={"jti": record.jti})

    async def _release_quietly(self, jti: str) -> None:
        try:
            await asyncio.wait_for(self._cache.release(jti), self._timeout)
        except (DependencyUnavailable, asyncio.TimeoutError):
            logger.error("could not release revocation claim", extra={"jti": jti})
