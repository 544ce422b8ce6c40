class DomainError(Exception):
    """Base class for all domain-level errors."""

    pass


class AuthenticationError(DomainError):
    """Credentials or token rejected.

    Bad signature, wrong kind, stale token version and revoked token all
    surface as this one kind so callers cannot tell which check failed.
    """

    def __init__(self, reason: str = "not authorized") -> None:
        super().__init__(reason)
        self.reason = reason


class TokenReplayDetected(AuthenticationError):
    """An already-rotated refresh token was presented again.

    Raised after the principal's token family has been revoked. Outside the
    core it is indistinguishable from any other AuthenticationError.
    """

    def __init__(self, principal_id: str, jti: str) -> None:
        super().__init__("refresh token replay")
        self.principal_id = principal_id
        self.jti = jti


class LockedOut(DomainError):
    """Too many failed attempts for a key; retry after `retry_after` seconds."""

    def __init__(self, retry_after: int) -> None:
        super().__init__(f"locked out for {retry_after}s")
        self.retry_after = max(int(retry_after), 1)


class EnrollmentStateError(DomainError):
    """Multi-factor operation attempted in the wrong enrollment state."""

    pass


class DependencyUnavailable(DomainError):
    """Cache, durable store or delivery collaborator failed or timed out."""

    pass
