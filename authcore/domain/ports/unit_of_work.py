from __future__ import annotations

from dataclasses import dataclass
from types import TracebackType
from typing import Protocol, Type

from authcore.domain.ports.credential_repository import CredentialRepositoryPort
from authcore.domain.ports.revocation_repository import RevocationRepositoryPort


@dataclass
class UnitOfWorkPort(Protocol):
    """
    Transaction boundary.

    Usage:
        async with uow as tx:
            version = await tx.credentials.increment_token_version(principal_id)
            await tx.revocations.insert(record)
            await tx.commit()
    """

    credentials: CredentialRepositoryPort
    revocations: RevocationRepositoryPort

    async def __aenter__(self) -> "UnitOfWorkPort":
        """Begin a new transaction."""

    async def __aexit__(
        self,
        exc_type: Type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """End the transaction; rolls back unless committed."""

    async def commit(self) -> None:
        """Commit the transaction."""

    async def rollback(self) -> None:
        """Rollback the transaction."""
