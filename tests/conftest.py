import pytest

from authcore.application.brute_force import BruteForceGuard
from authcore.application.mfa import MultiFactorManager
from authcore.application.revocation import RevocationRegistry
from authcore.application.rotation import RotationProtocol
from authcore.application.tokens import TokenIssuer
from authcore.domain.entities import Principal
from authcore.domain.policy import LockoutPolicy, RetryPolicy, TokenPolicy
from authcore.infrastructure.security.jwt_codec import JwtCodec
from tests.fakes import (
    FakeAttemptCounter,
    FakeClock,
    FakeCredentialRepo,
    FakeOtpDelivery,
    FakeRevocationCache,
    FakeRevocationRepo,
    FakeTotp,
    FakeUoWFactory,
    RecordingPasswordVerifier,
)

# no real sleeping between retries
FAST_RETRY = RetryPolicy(attempts=3, base=0.0)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def credentials():
    return FakeCredentialRepo()


@pytest.fixture()
def revocations():
    return FakeRevocationRepo()


@pytest.fixture()
def uow_factory(credentials, revocations):
    return FakeUoWFactory(credentials, revocations)


@pytest.fixture()
def cache(clock):
    return FakeRevocationCache(clock)


@pytest.fixture()
def counter(clock):
    return FakeAttemptCounter(clock)


@pytest.fixture()
def delivery():
    return FakeOtpDelivery()


@pytest.fixture()
def totp():
    return FakeTotp()


@pytest.fixture()
def verify_password_stub():
    return RecordingPasswordVerifier()


@pytest.fixture()
def hash_password_stub():
    return lambda p: "hashed-" + p


@pytest.fixture()
def codec():
    return JwtCodec("unit-test-signing-secret-0123456789", issuer="authcore-test")


@pytest.fixture()
def registry(cache, uow_factory, clock):
    return RevocationRegistry(
        cache=cache,
        uow_factory=uow_factory,
        retry_policy=FAST_RETRY,
        lookup_retry_policy=FAST_RETRY,
        timeout=1.0,
        clock=clock,
    )


@pytest.fixture()
def issuer(codec, registry, uow_factory, clock):
    return TokenIssuer(
        codec=codec,
        registry=registry,
        uow_factory=uow_factory,
        policy=TokenPolicy(),
        retry_policy=FAST_RETRY,
        timeout=1.0,
        clock=clock,
    )


@pytest.fixture()
def rotation(issuer, registry, uow_factory):
    return RotationProtocol(
        issuer=issuer,
        registry=registry,
        uow_factory=uow_factory,
        retry_policy=FAST_RETRY,
        timeout=1.0,
    )


@pytest.fixture()
def login_guard(counter):
    return BruteForceGuard(
        counter,
        LockoutPolicy(channel="login", max_failures=5, lockout_seconds=900),
        retry_policy=FAST_RETRY,
        timeout=1.0,
    )


@pytest.fixture()
def otp_guard(counter):
    return BruteForceGuard(
        counter,
        LockoutPolicy(channel="otp", max_failures=3, lockout_seconds=1800),
        retry_policy=FAST_RETRY,
        timeout=1.0,
    )


@pytest.fixture()
def mfa(uow_factory, totp, delivery, otp_guard):
    return MultiFactorManager(
        uow_factory=uow_factory,
        totp=totp,
        delivery=delivery,
        otp_guard=otp_guard,
        code_validity_seconds=600,
    )


@pytest.fixture()
def principal(credentials):
    return credentials.add(
        Principal(id="p-1", email="P@Example.com", role="seeker", token_version=1)
    )
