from typing import Protocol

from authcore.domain.entities import TokenClaims


class TokenCodecPort(Protocol):
    def encode(self, claims: TokenClaims) -> str:
        """Sign claims into an opaque token string."""

    def decode(self, token: str) -> TokenClaims:
        """
        Check signature, expiry and structure and return the claims.
        Raise ValueError for anything that is not a well-formed valid token.
        """
