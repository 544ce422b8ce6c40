from typing import Protocol


class TotpPort(Protocol):
    def generate_secret(self) -> str:
        """Fresh base32 shared secret."""

    def provisioning_uri(self, secret: str, account: str) -> str:
        """otpauth:// URI for authenticator apps."""

    def verify(self, secret: str, code: str) -> bool:
        """True if code matches the current step or one adjacent step."""
