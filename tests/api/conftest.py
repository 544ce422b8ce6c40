import pytest
from fastapi.testclient import TestClient

from authcore.domain.entities import Principal
from authcore.infrastructure.security.jwt_codec import JwtCodec
from authcore.main import create_app
from authcore.presentation.dependencies import (
    get_attempt_counter,
    get_hash_password,
    get_otp_delivery,
    get_revocation_cache,
    get_token_codec,
    get_totp,
    get_uow_factory,
    get_verify_password,
)
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


class Deps:
    def __init__(self) -> None:
        self.clock = FakeClock()
        self.credentials = FakeCredentialRepo()
        self.revocations = FakeRevocationRepo()
        self.uow_factory = FakeUoWFactory(self.credentials, self.revocations)
        self.cache = FakeRevocationCache(self.clock)
        self.counter = FakeAttemptCounter(self.clock)
        self.delivery = FakeOtpDelivery()
        self.totp = FakeTotp()
        self.verify_password = RecordingPasswordVerifier()
        self.codec = JwtCodec("api-test-signing-secret-0123456789", issuer="authcore")


@pytest.fixture()
def deps():
    return Deps()


@pytest.fixture()
def app(deps):
    app = create_app()
    app.dependency_overrides[get_uow_factory] = lambda: deps.uow_factory
    app.dependency_overrides[get_revocation_cache] = lambda: deps.cache
    app.dependency_overrides[get_attempt_counter] = lambda: deps.counter
    app.dependency_overrides[get_otp_delivery] = lambda: deps.delivery
    app.dependency_overrides[get_totp] = lambda: deps.totp
    app.dependency_overrides[get_token_codec] = lambda: deps.codec
    app.dependency_overrides[get_verify_password] = lambda: deps.verify_password
    app.dependency_overrides[get_hash_password] = lambda: (lambda p: "hashed-" + p)
    try:
        yield app
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture()
def account(deps) -> Principal:
    return deps.credentials.add(
        Principal(id="acc-1", email="login@example.com", token_version=1)
    )

