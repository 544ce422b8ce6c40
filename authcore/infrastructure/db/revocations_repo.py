from __future__ import annotations

from datetime import datetime
from typing import Optional

import psycopg

from authcore.domain.entities import RevokedToken
from authcore.domain.ports.revocation_repository import RevocationRepositoryPort
from authcore.infrastructure.db.errors import translate_db_errors


class PgRevocationRepository(RevocationRepositoryPort):
    def __init__(self, conn: psycopg.AsyncConnection) -> None:
        self._conn = conn

    async def insert(self, record: RevokedToken, *, reason: str | None = None) -> bool:
        sql = """
        INSERT INTO revoked_tokens (jti, kind, expires_at, reason)
        VALUES (%s, %s, %s, %s)
        ON CONFLICT (jti) DO NOTHING
        RETURNING jti
        """
        async with translate_db_errors("revocations.insert"), self._conn.cursor() as cur:
            await cur.execute(sql, (record.jti, record.kind, record.expires_at, reason))
            row = await cur.fetchone()
        return row is not None

    async def get(self, jti: str) -> Optional[RevokedToken]:
        sql = "SELECT jti, kind, expires_at FROM revoked_tokens WHERE jti = %s"
        async with translate_db_errors("revocations.get"), self._conn.cursor() as cur:
            await cur.execute(sql, (jti,))
            row = await cur.fetchone()
        if not row:
            return None
        jti_, kind, expires_at = row
        return RevokedToken(jti=str(jti_), kind=kind, expires_at=expires_at)

    async def purge_expired(self, now: datetime) -> int:
        sql = "DELETE FROM revoked_tokens WHERE expires_at < %s"
        async with translate_db_errors("revocations.purge_expired"), self._conn.cursor() as cur:
            await cur.execute(sql, (now,))
            return cur.rowcount or 0
