from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

from authcore.domain.errors import EnrollmentStateError

TokenKind = Literal["access", "refresh"]
MfaMethod = Literal["none", "totp", "sms"]
MfaStatus = Literal["inactive", "pending", "active"]

CLAIMS_SCHEMA_VERSION = 1


@dataclass
class Principal:
    """Credential record of one principal, as kept by the credential store."""

    id: str
    email: str
    role: str = "seeker"
    token_version: int = 0
    mfa_method: MfaMethod = "none"
    mfa_secret: str | None = None
    mfa_status: MfaStatus = "inactive"
    phone: str | None = None
    phone_verified: bool = False
    failed_logins: int = 0
    locked_until: datetime | None = None

    def __post_init__(self):
        if not self.email or not self.email.strip():
            raise ValueError("email is required")
        self.email = self.email.strip().lower()

    @property
    def mfa_enabled(self) -> bool:
        # a pending factor is never honored for login
        return self.mfa_status == "active" and self.mfa_method != "none"

    def begin_enrollment(self, method: MfaMethod, secret: str | None = None) -> None:
        if method not in ("totp", "sms"):
            raise EnrollmentStateError(f"unsupported method: {method}")
        if self.mfa_status == "active":
            raise EnrollmentStateError("a factor is already active")
        if method == "totp" and not secret:
            raise ValueError("totp enrollment needs a secret")
        if method == "sms" and not (self.phone and self.phone_verified):
            raise EnrollmentStateError("a verified phone number is required")
        self.mfa_method = method
        self.mfa_secret = secret if method == "totp" else None
        self.mfa_status = "pending"

    def activate_factor(self) -> None:
        if self.mfa_status != "pending":
            raise EnrollmentStateError("no pending enrollment")
        self.mfa_status = "active"

    def disable_factor(self) -> None:
        if self.mfa_status != "active":
            raise EnrollmentStateError("no active factor")
        self.mfa_method = "none"
        self.mfa_secret = None
        self.mfa_status = "inactive"


@dataclass(frozen=True)
class TokenClaims:
    """Fixed claim set carried by every bearer token."""

    sub: str
    role: str
    token_version: int
    jti: str
    iat: int
    exp: int
    kind: TokenKind
    v: int = CLAIMS_SCHEMA_VERSION

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)

    @property
    def lifetime_seconds(self) -> int:
        return self.exp - self.iat


@dataclass(frozen=True)
class IssuedToken:
    token: str
    claims: TokenClaims

    @property
    def expires_at(self) -> datetime:
        return self.claims.expires_at


@dataclass(frozen=True)
class TokenPair:
    access: IssuedToken
    refresh: IssuedToken


@dataclass(frozen=True)
class RevokedToken:
    jti: str
    kind: TokenKind
    expires_at: datetime


@dataclass(frozen=True)
class AttemptState:
    """Result of recording one failed attempt against a lockout key."""

    count: int
    retry_after: int = 0

    @property
    def locked(self) -> bool:
        return self.retry_after > 0
