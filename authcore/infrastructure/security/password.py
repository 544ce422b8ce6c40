from __future__ import annotations

from functools import lru_cache
from typing import Optional

from passlib.context import CryptContext

from authcore.settings import get_settings

# One global context; bcrypt is the only scheme we use.
_pwd = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(plain: str, *, rounds: int | None = None) -> str:
    """
    Hash a password using bcrypt. If rounds is None, use settings.bcrypt_rounds.
    """
    if rounds is None:
        rounds = int(get_settings().bcrypt_rounds)
    return _pwd.hash(plain, rounds=rounds)


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password("not-a-real-password")


def verify_password(plain: str, password_hash: Optional[str]) -> bool:
    """
    Verify a password against its bcrypt hash.

    With no hash (unknown account) a dummy hash is checked instead so the
    response takes as long as for a real account; the result is always False.
    """
    if password_hash is None:
        _pwd.verify(plain, _dummy_hash())
        return False
    return _pwd.verify(plain, password_hash)
