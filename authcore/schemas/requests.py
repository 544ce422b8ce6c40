from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class LoginIn(BaseModel):
    email: EmailStr = Field(..., description="The email of the principal", max_length=255)
    password: str = Field(..., min_length=1, max_length=1024)
    otp_code: Optional[str] = Field(
        None, description="Second-factor code, once a challenge was issued", max_length=16
    )
    remember_me: bool = False


class RefreshIn(BaseModel):
    refresh_token: Optional[str] = Field(
        None, description="Falls back to the refresh_token cookie when omitted"
    )


class LogoutIn(BaseModel):
    refresh_token: Optional[str] = None


class PasswordChangeIn(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=1024)
    new_password: str = Field(..., min_length=8, max_length=1024)


class MfaEnrollIn(BaseModel):
    method: Literal["totp", "sms"]


class MfaCodeIn(BaseModel):
    code: str = Field(..., min_length=4, max_length=16)


class PhoneOtpIn(BaseModel):
    phone: str = Field(
        ...,
        description="Phone number on file; spaces, dots, dashes and brackets are ignored",
        pattern=r"^\+?[0-9 ().\-]{6,24}$",
    )


class PhoneOtpVerifyIn(PhoneOtpIn):
    code: str = Field(..., min_length=4, max_length=16)
    remember_me: bool = False
