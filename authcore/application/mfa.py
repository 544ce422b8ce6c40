from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from authcore.application.brute_force import BruteForceGuard
from authcore.domain.entities import MfaMethod, Principal
from authcore.domain.errors import (
    AuthenticationError,
    DependencyUnavailable,
    EnrollmentStateError,
)
from authcore.domain.ports.otp_delivery import OtpDeliveryPort
from authcore.domain.ports.totp import TotpPort
from authcore.domain.ports.unit_of_work import UnitOfWorkPort

logger = logging.getLogger(__name__)

SMS_CHANNEL = "sms"


@dataclass(frozen=True)
class Enrollment:
    method: MfaMethod
    provisioning_uri: str | None = None
    secret: str | None = None
    dispatch_id: str | None = None
    expires_in: int | None = None


@dataclass(frozen=True)
class CodeDispatch:
    dispatch_id: str
    expires_in: int


class MultiFactorManager:
    """
    Enrollment state machine (inactive -> pending -> active -> inactive)
    and per-attempt code verification for TOTP and SMS factors.

    Every code check goes through the OTP brute-force guard first.
    """

    def __init__(
        self,
        *,
        uow_factory: Callable[[], UnitOfWorkPort],
        totp: TotpPort,
        delivery: OtpDeliveryPort,
        otp_guard: BruteForceGuard,
        code_validity_seconds: int = 600,
    ) -> None:
        self._uow_factory = uow_factory
        self._totp = totp
        self._delivery = delivery
        self._guard = otp_guard
        self._code_validity = code_validity_seconds

    async def begin_enrollment(self, principal_id: str, method: MfaMethod) -> Enrollment:
        async with self._uow_factory() as tx:
            principal = await self._load_for_update(tx, principal_id)
            if method == "totp":
                secret = self._totp.generate_secret()
                principal.begin_enrollment("totp", secret)
                enrollment = Enrollment(
                    method="totp",
                    secret=secret,
                    provisioning_uri=self._totp.provisioning_uri(secret, principal.email),
                )
            else:
                principal.begin_enrollment(method)
                await self._guard.ensure_not_locked(principal.id)
                dispatch = await self._send_sms(principal)
                enrollment = Enrollment(
                    method="sms",
                    dispatch_id=dispatch.dispatch_id,
                    expires_in=dispatch.expires_in,
                )
            await tx.credentials.save_mfa_state(principal)
            await tx.commit()

        logger.info(
            "mfa enrollment started",
            extra={"principal_id": principal_id, "method": method},
        )
        return enrollment

    async def activate(self, principal_id: str, code: str) -> Principal:
        async with self._uow_factory() as tx:
            principal = await self._load_for_update(tx, principal_id)
            if principal.mfa_status != "pending":
                raise EnrollmentStateError("no pending enrollment")
            await self._check_code(principal, code)
            principal.activate_factor()
            await tx.credentials.save_mfa_state(principal)
            await tx.commit()

        logger.info(
            "mfa factor activated",
            extra={"principal_id": principal_id, "method": principal.mfa_method},
        )
        return principal

    async def verify(self, principal: Principal, code: str) -> None:
        """Login-time check of an active factor. Raises on any failure."""
        if not principal.mfa_enabled:
            raise EnrollmentStateError("no active factor")
        await self._check_code(principal, code)

    async def send_login_code(self, principal: Principal) -> CodeDispatch:
        if not principal.mfa_enabled or principal.mfa_method != "sms":
            raise EnrollmentStateError("no active sms factor")
        await self._guard.ensure_not_locked(principal.id)
        return await self._send_sms(principal)

    @property
    def code_validity_seconds(self) -> int:
        return self._code_validity

    async def send_phone_code(
        self, phone: str, principal: Principal | None
    ) -> CodeDispatch | None:
        """
        First step of passwordless phone login. The lockout key is the phone
        number itself, so unknown numbers are throttled the same way; nothing
        is sent to them.
        """
        await self._guard.ensure_not_locked(phone)
        if principal is None:
            return None
        return await self._send_sms(principal)

    async def check_phone_code(
        self, phone: str, principal: Principal | None, code: str
    ) -> None:
        await self._guard.ensure_not_locked(phone)

        approved = False
        if principal is not None:
            outcome = await self._delivery.check_one_time_code(
                SMS_CHANNEL, principal.phone, code
            )
            approved = outcome == "approved"

        if not approved:
            await self._guard.record_failure(phone)
            raise AuthenticationError()

        await self._guard.record_success(phone)
        logger.info("mfa.sms_verified", extra={"principal_id": principal.id})

    async def disable(self, principal_id: str, code: str) -> int:
        """
        Turn the active factor off after a fresh successful check.
        Bumps token_version in the same transaction; returns the new version.
        """
        async with self._uow_factory() as tx:
            principal = await self._load_for_update(tx, principal_id)
            if principal.mfa_status != "active":
                raise EnrollmentStateError("no active factor")
            await self._check_code(principal, code)
            previous = principal.mfa_method
            principal.disable_factor()
            await tx.credentials.save_mfa_state(principal)
            version = await tx.credentials.increment_token_version(principal.id)
            await tx.commit()

        logger.info(
            "mfa factor disabled",
            extra={
                "principal_id": principal_id,
                "previous_method": previous,
                "token_version": version,
            },
        )
        return version

    async def _load_for_update(self, tx: UnitOfWorkPort, principal_id: str) -> Principal:
        principal = await tx.credentials.get_by_id_for_update(principal_id)
        if principal is None:
            raise AuthenticationError()
        return principal

    async def _check_code(self, principal: Principal, code: str) -> None:
        await self._guard.ensure_not_locked(principal.id)

        if principal.mfa_method == "totp":
            ok = bool(principal.mfa_secret) and self._totp.verify(principal.mfa_secret, code)
        elif principal.mfa_method == "sms":
            if not principal.phone:
                raise EnrollmentStateError("no phone number on file")
            outcome = await self._delivery.check_one_time_code(
                SMS_CHANNEL, principal.phone, code
            )
            ok = outcome == "approved"
        else:
            raise EnrollmentStateError("no factor enrolled")

        if not ok:
            await self._guard.record_failure(principal.id)
            logger.info(
                "mfa code rejected",
                extra={"principal_id": principal.id, "method": principal.mfa_method},
            )
            raise AuthenticationError()

        await self._guard.record_success(principal.id)
        if principal.mfa_method == "totp":
            logger.info("mfa.totp_verified", extra={"principal_id": principal.id})
        else:
            logger.info("mfa.sms_verified", extra={"principal_id": principal.id})

    async def _send_sms(self, principal: Principal) -> CodeDispatch:
        try:
            dispatch_id = await self._delivery.send_one_time_code(
                SMS_CHANNEL, principal.phone
            )
        except DependencyUnavailable:
            logger.error("sms dispatch failed", extra={"principal_id": principal.id})
            raise
        logger.info(
            "sms code dispatched",
            extra={"principal_id": principal.id, "dispatch_id": dispatch_id},
        )
        return CodeDispatch(dispatch_id=dispatch_id, expires_in=self._code_validity)
