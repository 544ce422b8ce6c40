from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from authcore.application.brute_force import BruteForceGuard
from authcore.application.mfa import CodeDispatch, MultiFactorManager
from authcore.application.revocation import RevocationRegistry
from authcore.application.tokens import TokenIssuer
from authcore.domain.entities import MfaMethod, Principal, TokenClaims, TokenPair
from authcore.domain.errors import AuthenticationError, LockedOut
from authcore.domain.ports.unit_of_work import UnitOfWorkPort
from authcore.domain.result import Ok
from authcore.domain.services import normalize_email, normalize_phone, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginResult:
    tokens: TokenPair | None = None
    mfa_method: MfaMethod | None = None
    dispatch: CodeDispatch | None = None

    @property
    def mfa_required(self) -> bool:
        return self.tokens is None


async def login(
    *,
    uow_factory: Callable[[], UnitOfWorkPort],
    issuer: TokenIssuer,
    login_guard: BruteForceGuard,
    mfa: MultiFactorManager,
    email: str,
    password: str,
    verify_password: Callable[[str, Optional[str]], bool],
    otp_code: str | None = None,
    remember_me: bool = False,
) -> LoginResult:
    normalized_email = normalize_email(email)
    await login_guard.ensure_not_locked(normalized_email)

    async with uow_factory() as tx:
        record = await tx.credentials.get_by_email_with_hash(normalized_email)

    if record is None:
        # same bcrypt cost as a real check
        verify_password(password, None)
        await _record_failed_login(uow_factory, login_guard, normalized_email, None)
        raise AuthenticationError()

    principal, password_hash = record
    if not verify_password(password, password_hash):
        await _record_failed_login(uow_factory, login_guard, normalized_email, principal)
        raise AuthenticationError()

    await login_guard.record_success(normalized_email)
    if principal.failed_logins or principal.locked_until is not None:
        async with uow_factory() as tx:
            await tx.credentials.record_login_attempt(principal.id, 0, None)
            await tx.commit()

    if principal.mfa_enabled:
        try:
            if otp_code is None:
                dispatch = None
                if principal.mfa_method == "sms":
                    dispatch = await mfa.send_login_code(principal)
                logger.info(
                    "login waiting for second factor",
                    extra={"principal_id": principal.id, "method": principal.mfa_method},
                )
                return LoginResult(mfa_method=principal.mfa_method, dispatch=dispatch)
            await mfa.verify(principal, otp_code)
        except LockedOut as e:
            # past the password check a lockout must look like any other failure
            logger.info(
                "login second factor locked",
                extra={"principal_id": principal.id, "retry_after": e.retry_after},
            )
            raise AuthenticationError() from None

    tokens = issuer.issue_pair(principal, remember_me=remember_me)
    logger.info(
        "login succeeded",
        extra={"principal_id": principal.id, "remember_me": remember_me},
    )
    return LoginResult(tokens=tokens)


async def _record_failed_login(
    uow_factory: Callable[[], UnitOfWorkPort],
    login_guard: BruteForceGuard,
    normalized_email: str,
    principal: Principal | None,
) -> None:
    state = await login_guard.record_failure(normalized_email)
    if principal is None:
        return

    locked_until = None
    if state.locked:
        locked_until = utcnow() + timedelta(seconds=state.retry_after)
    async with uow_factory() as tx:
        await tx.credentials.record_login_attempt(
            principal.id, principal.failed_logins + 1, locked_until
        )
        await tx.commit()


async def _principal_for_phone(
    uow_factory: Callable[[], UnitOfWorkPort], phone: str
) -> Principal | None:
    async with uow_factory() as tx:
        principal = await tx.credentials.get_by_phone(phone)
    if principal is None or not principal.phone_verified:
        return None
    if principal.mfa_enabled and principal.mfa_method == "totp":
        # a principal with an authenticator app always needs it
        return None
    return principal


async def login_with_sms_code(
    *,
    uow_factory: Callable[[], UnitOfWorkPort],
    mfa: MultiFactorManager,
    phone: str,
) -> int:
    """
    Send a one-time login code to a phone number on file.

    Returns the code validity in seconds. The answer is the same whether or
    not the number belongs to anyone.
    """
    normalized_phone = normalize_phone(phone)
    principal = await _principal_for_phone(uow_factory, normalized_phone)
    dispatch = await mfa.send_phone_code(normalized_phone, principal)
    if dispatch is None:
        logger.info("phone login requested for unknown number")
    return mfa.code_validity_seconds


async def verify_sms_login(
    *,
    uow_factory: Callable[[], UnitOfWorkPort],
    issuer: TokenIssuer,
    mfa: MultiFactorManager,
    phone: str,
    code: str,
    remember_me: bool = False,
) -> TokenPair:
    normalized_phone = normalize_phone(phone)
    principal = await _principal_for_phone(uow_factory, normalized_phone)
    await mfa.check_phone_code(normalized_phone, principal, code)

    tokens = issuer.issue_pair(principal, remember_me=remember_me)
    logger.info(
        "phone login succeeded",
        extra={"principal_id": principal.id, "remember_me": remember_me},
    )
    return tokens


async def logout(
    *,
    issuer: TokenIssuer,
    registry: RevocationRegistry,
    access_claims: TokenClaims,
    refresh_token: str | None = None,
) -> None:
    """Revoke the presented access token and, if it belongs to the same principal, the refresh token."""
    await registry.revoke(
        access_claims.jti, "access", access_claims.expires_at, reason="logout"
    )

    if refresh_token:
        decoded = issuer.decode(refresh_token, "refresh")
        if isinstance(decoded, Ok) and decoded.value.sub == access_claims.sub:
            await registry.revoke(
                decoded.value.jti, "refresh", decoded.value.expires_at, reason="logout"
            )

    logger.info(
        "logged out", extra={"principal_id": access_claims.sub, "jti": access_claims.jti}
    )


async def logout_everywhere(
    uow_factory: Callable[[], UnitOfWorkPort], principal_id: str
) -> int:
    async with uow_factory() as tx:
        try:
            version = await tx.credentials.increment_token_version(principal_id)
        except LookupError:
            # principal removed after its token was verified
            raise AuthenticationError() from None
        await tx.commit()

    logger.info(
        "all sessions revoked",
        extra={"principal_id": principal_id, "token_version": version},
    )
    return version


async def change_password(
    uow_factory: Callable[[], UnitOfWorkPort],
    principal_id: str,
    current_password: str,
    new_password: str,
    verify_password: Callable[[str, Optional[str]], bool],
    hash_password: Callable[..., str],
) -> int:
    new_hash = hash_password(new_password)

    async with uow_factory() as tx:
        record = await tx.credentials.get_by_id_with_hash_for_update(principal_id)
        if record is None:
            raise AuthenticationError()
        _, password_hash = record
        if not verify_password(current_password, password_hash):
            raise AuthenticationError()
        version = await tx.credentials.set_password_hash(principal_id, new_hash)
        await tx.commit()

    logger.info(
        "password changed",
        extra={"principal_id": principal_id, "token_version": version},
    )
    return version
