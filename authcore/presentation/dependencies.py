from functools import partial
from typing import Annotated, Callable, Optional

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from authcore.application.brute_force import BruteForceGuard
from authcore.application.mfa import MultiFactorManager
from authcore.application.revocation import RevocationRegistry
from authcore.application.rotation import RotationProtocol
from authcore.application.tokens import TokenIssuer
from authcore.domain.entities import TokenClaims
from authcore.domain.errors import AuthenticationError
from authcore.domain.policy import LockoutPolicy, RetryPolicy, TokenPolicy
from authcore.domain.ports.attempt_counter import AttemptCounterPort
from authcore.domain.ports.otp_delivery import OtpDeliveryPort
from authcore.domain.ports.revocation_cache import RevocationCachePort
from authcore.domain.ports.token_codec import TokenCodecPort
from authcore.domain.ports.totp import TotpPort
from authcore.domain.ports.unit_of_work import UnitOfWorkPort
from authcore.domain.result import Err
from authcore.infrastructure.db.pool import get_pool
from authcore.infrastructure.db.uow import PgUnitOfWork
from authcore.infrastructure.redis_cache.attempt_counter import RedisAttemptCounter
from authcore.infrastructure.redis_cache.pool import get_redis
from authcore.infrastructure.redis_cache.revocation_cache import RedisRevocationCache
from authcore.infrastructure.security.jwt_codec import JwtCodec
from authcore.infrastructure.security.password import hash_password, verify_password
from authcore.infrastructure.security.totp import TotpAuthenticator
from authcore.settings import Settings, get_settings

bearer_scheme = HTTPBearer(auto_error=False)

UowFactory = Callable[[], UnitOfWorkPort]


# --- policies built from settings ---------------------------------------------


def token_policy(settings: Settings) -> TokenPolicy:
    return TokenPolicy(
        access_ttl_seconds=settings.access_token_ttl_seconds,
        refresh_ttl_seconds=settings.refresh_token_ttl_seconds,
        remember_me_ttl_seconds=settings.remember_me_ttl_seconds,
    )


def retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        attempts=settings.dependency_retry_attempts,
        base=settings.dependency_retry_base_seconds,
    )


def login_lockout(settings: Settings) -> LockoutPolicy:
    return LockoutPolicy(
        channel="login",
        max_failures=settings.login_max_failures,
        lockout_seconds=settings.login_lockout_seconds,
    )


def otp_lockout(settings: Settings) -> LockoutPolicy:
    return LockoutPolicy(
        channel="otp",
        max_failures=settings.otp_max_failures,
        lockout_seconds=settings.otp_lockout_seconds,
    )


# --- ports ----------------------------------------------------------------------


def get_uow_factory() -> UowFactory:
    return partial(PgUnitOfWork, get_pool())


def get_revocation_cache() -> RevocationCachePort:
    return RedisRevocationCache(get_redis())


def get_attempt_counter() -> AttemptCounterPort:
    return RedisAttemptCounter(get_redis())


def get_token_codec() -> TokenCodecPort:
    settings = get_settings()
    return JwtCodec(
        settings.jwt_secret, issuer=settings.jwt_issuer, algorithm=settings.jwt_algorithm
    )


def get_totp() -> TotpPort:
    return TotpAuthenticator(issuer=get_settings().totp_issuer)


def get_otp_delivery(request: Request) -> OtpDeliveryPort:
    # This is set in authcore.main lifespan()
    return request.app.state.sms_adapter


def get_hash_password() -> Callable[..., str]:
    return hash_password


def get_verify_password() -> Callable[[str, Optional[str]], bool]:
    return verify_password


# --- components -----------------------------------------------------------------


def get_registry(
    cache: Annotated[RevocationCachePort, Depends(get_revocation_cache)],
    uow_factory: Annotated[UowFactory, Depends(get_uow_factory)],
) -> RevocationRegistry:
    settings = get_settings()
    return RevocationRegistry(
        cache=cache,
        uow_factory=uow_factory,
        retry_policy=retry_policy(settings),
        timeout=settings.dependency_timeout_seconds,
    )


def get_token_issuer(
    codec: Annotated[TokenCodecPort, Depends(get_token_codec)],
    registry: Annotated[RevocationRegistry, Depends(get_registry)],
    uow_factory: Annotated[UowFactory, Depends(get_uow_factory)],
) -> TokenIssuer:
    settings = get_settings()
    return TokenIssuer(
        codec=codec,
        registry=registry,
        uow_factory=uow_factory,
        policy=token_policy(settings),
        timeout=settings.dependency_timeout_seconds,
    )


def get_rotation(
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    registry: Annotated[RevocationRegistry, Depends(get_registry)],
    uow_factory: Annotated[UowFactory, Depends(get_uow_factory)],
) -> RotationProtocol:
    settings = get_settings()
    return RotationProtocol(
        issuer=issuer,
        registry=registry,
        uow_factory=uow_factory,
        retry_policy=retry_policy(settings),
        timeout=settings.dependency_timeout_seconds,
    )


def get_login_guard(
    counter: Annotated[AttemptCounterPort, Depends(get_attempt_counter)],
) -> BruteForceGuard:
    settings = get_settings()
    return BruteForceGuard(
        counter, login_lockout(settings), timeout=settings.dependency_timeout_seconds
    )


def get_otp_guard(
    counter: Annotated[AttemptCounterPort, Depends(get_attempt_counter)],
) -> BruteForceGuard:
    settings = get_settings()
    return BruteForceGuard(
        counter, otp_lockout(settings), timeout=settings.dependency_timeout_seconds
    )


def get_mfa_manager(
    uow_factory: Annotated[UowFactory, Depends(get_uow_factory)],
    totp: Annotated[TotpPort, Depends(get_totp)],
    delivery: Annotated[OtpDeliveryPort, Depends(get_otp_delivery)],
    otp_guard: Annotated[BruteForceGuard, Depends(get_otp_guard)],
) -> MultiFactorManager:
    return MultiFactorManager(
        uow_factory=uow_factory,
        totp=totp,
        delivery=delivery,
        otp_guard=otp_guard,
        code_validity_seconds=get_settings().otp_validity_seconds,
    )


# --- authentication -------------------------------------------------------------


async def get_current_claims(
    request: Request,
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    auth: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> TokenClaims:
    """Bearer header first, then the access_token cookie."""
    token = auth.credentials if auth else request.cookies.get("access_token")
    if not token:
        raise AuthenticationError()
    result = await issuer.verify(token, "access")
    if isinstance(result, Err):
        raise result.error
    return result.value
