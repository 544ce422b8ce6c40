from __future__ import annotations

import jwt

from authcore.domain.entities import CLAIMS_SCHEMA_VERSION, TokenClaims

_REQUIRED = ["exp", "iat", "sub", "jti", "typ", "iss"]


class JwtCodec:
    """HMAC-signed JWT wire form of TokenClaims."""

    def __init__(self, secret: str, *, issuer: str, algorithm: str = "HS256") -> None:
        if not secret:
            raise ValueError("jwt secret is required")
        self._secret = secret
        self._issuer = issuer
        self._algorithm = algorithm

    def encode(self, claims: TokenClaims) -> str:
        payload = {
            "iss": self._issuer,
            "sub": claims.sub,
            "role": claims.role,
            "tokenVersion": claims.token_version,
            "jti": claims.jti,
            "iat": claims.iat,
            "exp": claims.exp,
            "typ": claims.kind,
            "v": claims.v,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"require": _REQUIRED},
            )
        except jwt.ExpiredSignatureError as e:
            raise ValueError("token expired") from e
        except jwt.InvalidTokenError as e:
            raise ValueError(f"invalid token: {e}") from e

        kind = payload["typ"]
        if kind not in ("access", "refresh"):
            raise ValueError(f"unknown token kind: {kind!r}")
        if payload.get("v", CLAIMS_SCHEMA_VERSION) != CLAIMS_SCHEMA_VERSION:
            raise ValueError(f"unsupported claims version: {payload.get('v')!r}")
        try:
            return TokenClaims(
                sub=str(payload["sub"]),
                role=str(payload["role"]),
                token_version=int(payload["tokenVersion"]),
                jti=str(payload["jti"]),
                iat=int(payload["iat"]),
                exp=int(payload["exp"]),
                kind=kind,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"malformed claims: {e}") from e
