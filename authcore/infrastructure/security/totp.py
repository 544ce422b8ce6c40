from __future__ import annotations

import pyotp


class TotpAuthenticator:
    """RFC 6238 codes (30 s steps, 6 digits) via pyotp."""

    def __init__(self, *, issuer: str, valid_window: int = 1) -> None:
        self._issuer = issuer
        self._valid_window = valid_window

    def generate_secret(self) -> str:
        return pyotp.random_base32()

    def provisioning_uri(self, secret: str, account: str) -> str:
        return pyotp.TOTP(secret).provisioning_uri(name=account, issuer_name=self._issuer)

    def verify(self, secret: str, code: str) -> bool:
        code = (code or "").strip()
        if not code.isdigit():
            return False
        return pyotp.TOTP(secret).verify(code, valid_window=self._valid_window)
