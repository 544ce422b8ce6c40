from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from authcore.application.retry import call_with_retry
from authcore.application.revocation import RevocationRegistry
from authcore.domain.entities import (
    IssuedToken,
    Principal,
    TokenClaims,
    TokenKind,
    TokenPair,
)
from authcore.domain.errors import AuthenticationError, DependencyUnavailable
from authcore.domain.policy import RetryPolicy, TokenPolicy
from authcore.domain.ports.token_codec import TokenCodecPort
from authcore.domain.ports.unit_of_work import UnitOfWorkPort
from authcore.domain.result import Err, Ok, Result
from authcore.domain.services import generate_jti, utcnow

logger = logging.getLogger(__name__)


class TokenIssuer:
    """Mints and verifies access/refresh bearer tokens."""

    def __init__(
        self,
        *,
        codec: TokenCodecPort,
        registry: RevocationRegistry,
        uow_factory: Callable[[], UnitOfWorkPort],
        policy: TokenPolicy | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout: float = 2.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._codec = codec
        self._registry = registry
        self._uow_factory = uow_factory
        self.policy = policy or TokenPolicy()
        self._retry = retry_policy or RetryPolicy(attempts=2)
        self._timeout = timeout
        self._clock = clock

    def issue(
        self, principal: Principal, kind: TokenKind, *, remember_me: bool = False
    ) -> IssuedToken:
        iat = int(self._clock().timestamp())
        claims = TokenClaims(
            sub=principal.id,
            role=principal.role,
            token_version=principal.token_version,
            jti=generate_jti(),
            iat=iat,
            exp=iat + self.policy.lifetime(kind, remember_me=remember_me),
            kind=kind,
        )
        return IssuedToken(token=self._codec.encode(claims), claims=claims)

    def issue_pair(self, principal: Principal, *, remember_me: bool = False) -> TokenPair:
        return TokenPair(
            access=self.issue(principal, "access"),
            refresh=self.issue(principal, "refresh", remember_me=remember_me),
        )

    def is_remember_me(self, claims: TokenClaims) -> bool:
        return (
            claims.kind == "refresh"
            and claims.lifetime_seconds > self.policy.refresh_ttl_seconds
        )

    def decode(
        self, token: str, expected_kind: TokenKind
    ) -> Result[TokenClaims, AuthenticationError]:
        """Signature, expiry, structure and kind only; no store is consulted."""
        try:
            claims = self._codec.decode(token)
        except ValueError as e:
            logger.info("token rejected", extra={"check": "decode", "error": str(e)})
            return Err(AuthenticationError())
        if claims.kind != expected_kind:
            logger.info(
                "token rejected",
                extra={"check": "kind", "jti": claims.jti, "kind": claims.kind},
            )
            return Err(AuthenticationError())
        return Ok(claims)

    async def current_principal(self, principal_id: str) -> Principal | None:
        async def _load() -> Principal | None:
            async with self._uow_factory() as tx:
                return await tx.credentials.get_by_id(principal_id)

        return await call_with_retry(
            _load, policy=self._retry, timeout=self._timeout, what="credential lookup"
        )

    async def verify(
        self, token: str, expected_kind: TokenKind
    ) -> Result[TokenClaims, AuthenticationError]:
        decoded = self.decode(token, expected_kind)
        if isinstance(decoded, Err):
            return decoded
        claims = decoded.value

        try:
            principal = await self.current_principal(claims.sub)
        except DependencyUnavailable:
            logger.error("credential store unreachable; failing closed", extra={"jti": claims.jti})
            return Err(AuthenticationError())
        if principal is None or principal.token_version != claims.token_version:
            logger.info("token rejected", extra={"check": "token_version", "jti": claims.jti})
            return Err(AuthenticationError())

        if await self._registry.is_revoked(claims.jti):
            logger.info("token rejected", extra={"check": "revoked", "jti": claims.jti})
            return Err(AuthenticationError())

        return Ok(claims)
