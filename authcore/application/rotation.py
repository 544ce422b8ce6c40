from __future__ import annotations

import logging
from typing import Callable

from authcore.application.retry import call_with_retry
from authcore.application.revocation import RevocationRegistry, RevocationStatus
from authcore.application.tokens import TokenIssuer
from authcore.domain.entities import TokenClaims, TokenPair
from authcore.domain.errors import (
    AuthenticationError,
    DependencyUnavailable,
    TokenReplayDetected,
)
from authcore.domain.policy import RetryPolicy
from authcore.domain.ports.unit_of_work import UnitOfWorkPort
from authcore.domain.result import Err

logger = logging.getLogger(__name__)


class RotationProtocol:
    """
    Exchanges a refresh token for a new pair, consuming the old one.

    Presenting a consumed refresh token again revokes the whole token family
    of the principal by bumping its token_version.
    """

    def __init__(
        self,
        *,
        issuer: TokenIssuer,
        registry: RevocationRegistry,
        uow_factory: Callable[[], UnitOfWorkPort],
        retry_policy: RetryPolicy | None = None,
        timeout: float = 2.0,
    ) -> None:
        self._issuer = issuer
        self._registry = registry
        self._uow_factory = uow_factory
        self._retry = retry_policy or RetryPolicy()
        self._timeout = timeout

    async def rotate(self, old_refresh_token: str) -> TokenPair:
        decoded = self._issuer.decode(old_refresh_token, "refresh")
        if isinstance(decoded, Err):
            raise decoded.error
        claims = decoded.value

        principal = await self._issuer.current_principal(claims.sub)
        if principal is None or principal.token_version != claims.token_version:
            raise AuthenticationError()

        status = await self._registry.lookup(claims.jti)
        if status is RevocationStatus.UNKNOWN:
            raise DependencyUnavailable("revocation status unknown")
        if status is RevocationStatus.REVOKED:
            await self._escalate_replay(claims)

        # the claim is the critical section: one concurrent caller wins
        claimed = await self._registry.claim(
            claims.jti, "refresh", claims.expires_at, reason="rotated"
        )
        if not claimed:
            await self._escalate_replay(claims)

        pair = self._issuer.issue_pair(
            principal, remember_me=self._issuer.is_remember_me(claims)
        )
        logger.info(
            "refresh token rotated",
            extra={
                "principal_id": principal.id,
                "old_jti": claims.jti,
                "new_jti": pair.refresh.claims.jti,
            },
        )
        return pair

    async def _escalate_replay(self, claims: TokenClaims) -> None:
        async def _bump() -> int:
            async with self._uow_factory() as tx:
                try:
                    version = await tx.credentials.increment_token_version(claims.sub)
                except LookupError:
                    raise AuthenticationError() from None
                await tx.commit()
                return version

        new_version = await call_with_retry(
            _bump, policy=self._retry, timeout=self._timeout, what="token family revocation"
        )
        logger.warning(
            "refresh token replay detected; token family revoked",
            extra={
                "principal_id": claims.sub,
                "jti": claims.jti,
                "token_version": new_version,
            },
        )
        raise TokenReplayDetected(principal_id=claims.sub, jti=claims.jti)
