from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from authcore.domain.entities import Principal


class CredentialRepositoryPort(Protocol):
    async def get_by_id(self, principal_id: str) -> Optional[Principal]:
        """Fetch a principal by id. Return None if not found."""

    async def get_by_id_for_update(self, principal_id: str) -> Optional[Principal]:
        """
        Fetch a principal by id and lock the row for update (transaction-scoped).
        Return None if not found.
        """

    async def get_by_email_with_hash(self, email: str) -> tuple[Principal, str] | None:
        """Fetch a principal and its password hash by normalized email."""

    async def get_by_phone(self, phone: str) -> Optional[Principal]:
        """Fetch a principal by normalized phone number. Return None if not found."""

    async def get_by_id_with_hash_for_update(
        self, principal_id: str
    ) -> tuple[Principal, str] | None:
        """Fetch a principal and its password hash, locking the row."""

    async def increment_token_version(self, principal_id: str) -> int:
        """Atomically bump token_version and return the new value."""

    async def save_mfa_state(self, principal: Principal) -> None:
        """Persist mfa_method, mfa_secret and mfa_status of the principal."""

    async def record_login_attempt(
        self, principal_id: str, failed_logins: int, locked_until: datetime | None
    ) -> None:
        """Mirror the login lockout counters on the credential record."""

    async def set_password_hash(self, principal_id: str, password_hash: str) -> int:
        """Store a new password hash, bump token_version and return it."""
