from typing import Literal, Optional

from pydantic import BaseModel, Field

from authcore.domain.entities import TokenPair


class TokensOut(BaseModel):
    access_token: str
    refresh_token: str
    token_type: Literal["bearer"] = "bearer"
    expires_in: int = Field(..., description="Access token lifetime in seconds")

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokensOut":
        return cls(
            access_token=pair.access.token,
            refresh_token=pair.refresh.token,
            expires_in=pair.access.claims.lifetime_seconds,
        )


class MfaChallengeOut(BaseModel):
    mfa_required: Literal[True] = True
    method: Literal["totp", "sms"]
    dispatch_id: Optional[str] = None
    expires_in: Optional[int] = None


class EnrollmentOut(BaseModel):
    method: Literal["totp", "sms"]
    status: Literal["pending"] = "pending"
    provisioning_uri: Optional[str] = None
    secret: Optional[str] = None
    dispatch_id: Optional[str] = None
    expires_in: Optional[int] = None


class MfaStatusOut(BaseModel):
    method: Literal["none", "totp", "sms"]
    status: Literal["inactive", "pending", "active"]


class PrincipalOut(BaseModel):
    id: str
    email: str
    role: str
    mfa_method: Literal["none", "totp", "sms"]
    mfa_enabled: bool


class OkOut(BaseModel):
    status: Literal["ok"] = "ok"


class OtpSentOut(BaseModel):
    status: Literal["sent"] = "sent"
    expires_in: int = Field(..., description="Code validity in seconds")
