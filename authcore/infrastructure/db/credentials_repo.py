from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import psycopg

from authcore.domain.entities import Principal
from authcore.domain.ports.credential_repository import CredentialRepositoryPort
from authcore.infrastructure.db.errors import translate_db_errors

_PRINCIPAL_COLUMNS = """
    id, email, role, token_version, mfa_method, mfa_secret, mfa_status,
    phone, phone_verified, failed_logins, locked_until
"""


def _to_principal(row: tuple[Any, ...]) -> Principal:
    (
        id_,
        email,
        role,
        token_version,
        mfa_method,
        mfa_secret,
        mfa_status,
        phone,
        phone_verified,
        failed_logins,
        locked_until,
    ) = row
    return Principal(
        id=str(id_),
        email=str(email),
        role=str(role),
        token_version=int(token_version),
        mfa_method=mfa_method,
        mfa_secret=mfa_secret,
        mfa_status=mfa_status,
        phone=phone,
        phone_verified=bool(phone_verified),
        failed_logins=failed_logins or 0,
        locked_until=locked_until,
    )


class PgCredentialRepository(CredentialRepositoryPort):
    """
    Postgres implementation of CredentialRepositoryPort.

    NOTE:
    - Constructed with the active async connection supplied by the UoW.
    - It does not commit; the UnitOfWork controls the transaction boundary.
    """

    def __init__(self, conn: psycopg.AsyncConnection) -> None:
        self._conn = conn

    async def _fetchone(self, what: str, sql: str, params: tuple) -> Optional[tuple]:
        async with translate_db_errors(what), self._conn.cursor() as cur:
            await cur.execute(sql, params)
            return await cur.fetchone()

    async def get_by_id(self, principal_id: str) -> Optional[Principal]:
        row = await self._fetchone(
            "credentials.get_by_id",
            f"SELECT {_PRINCIPAL_COLUMNS} FROM principals WHERE id = %s",
            (principal_id,),
        )
        return _to_principal(row) if row else None

    async def get_by_id_for_update(self, principal_id: str) -> Optional[Principal]:
        row = await self._fetchone(
            "credentials.get_by_id_for_update",
            f"SELECT {_PRINCIPAL_COLUMNS} FROM principals WHERE id = %s FOR UPDATE",
            (principal_id,),
        )
        return _to_principal(row) if row else None

    async def get_by_email_with_hash(
        self, email: str
    ) -> Optional[tuple[Principal, str]]:
        row = await self._fetchone(
            "credentials.get_by_email_with_hash",
            f"""
            SELECT {_PRINCIPAL_COLUMNS}, password_hash
            FROM principals
            WHERE email = LOWER(TRIM(%s))
            """,
            (email,),
        )
        if not row:
            return None
        return _to_principal(row[:-1]), row[-1]

    async def get_by_id_with_hash_for_update(
        self, principal_id: str
    ) -> Optional[tuple[Principal, str]]:
        row = await self._fetchone(
            "credentials.get_by_id_with_hash_for_update",
            f"""
            SELECT {_PRINCIPAL_COLUMNS}, password_hash
            FROM principals
            WHERE id = %s
            FOR UPDATE
            """,
            (principal_id,),
        )
        if not row:
            return None
        return _to_principal(row[:-1]), row[-1]

    async def get_by_phone(self, phone: str) -> Optional[Principal]:
        row = await self._fetchone(
            "credentials.get_by_phone",
            f"""
            SELECT {_PRINCIPAL_COLUMNS}
            FROM principals
            WHERE regexp_replace(phone, '[^0-9+]', '', 'g') = %s
            ORDER BY phone_verified DESC, created_at
            LIMIT 1
            """,
            (phone,),
        )
        return _to_principal(row) if row else None

    async def increment_token_version(self, principal_id: str) -> int:
        row = await self._fetchone(
            "credentials.increment_token_version",
            """
            UPDATE principals
            SET token_version = token_version + 1
            WHERE id = %s
            RETURNING token_version
            """,
            (principal_id,),
        )
        if not row:
            raise LookupError(f"principal {principal_id} not found")
        return int(row[0])

    async def save_mfa_state(self, principal: Principal) -> None:
        await self._fetchone(
            "credentials.save_mfa_state",
            """
            UPDATE principals
            SET mfa_method = %s, mfa_secret = %s, mfa_status = %s
            WHERE id = %s
            RETURNING id
            """,
            (
                principal.mfa_method,
                principal.mfa_secret,
                principal.mfa_status,
                principal.id,
            ),
        )

    async def record_login_attempt(
        self, principal_id: str, failed_logins: int, locked_until: datetime | None
    ) -> None:
        await self._fetchone(
            "credentials.record_login_attempt",
            """
            UPDATE principals
            SET failed_logins = %s, locked_until = %s
            WHERE id = %s
            RETURNING id
            """,
            (failed_logins, locked_until, principal_id),
        )

    async def set_password_hash(self, principal_id: str, password_hash: str) -> int:
        row = await self._fetchone(
            "credentials.set_password_hash",
            """
            UPDATE principals
            SET password_hash = %s,
                password_changed_at = now(),
                token_version = token_version + 1
            WHERE id = %s
            RETURNING token_version
            """,
            (password_hash, principal_id),
        )
        if not row:
            raise LookupError(f"principal {principal_id} not found")
        return int(row[0])
