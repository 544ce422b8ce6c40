# authcore/domain/services.py
from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_jti() -> str:
    """Random token identifier; uuid4 draws from os.urandom."""
    return str(uuid.uuid4())


def remaining_ttl_seconds(expires_at: datetime, now: datetime | None = None) -> int:
    """
    Whole seconds until `expires_at`, rounded up; 0 when already past.
    Naive timestamps are taken as UTC.
    """
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    now = now or utcnow()
    remaining = (expires_at - now).total_seconds()
    if remaining <= 0:
        return 0
    return math.ceil(remaining)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_phone(phone: str) -> str:
    """Digits only, keeping a leading '+'; spaces, dots, dashes and brackets dropped."""
    stripped = phone.strip()
    digits = "".join(ch for ch in stripped if ch.isdigit())
    return "+" + digits if stripped.startswith("+") else digits
