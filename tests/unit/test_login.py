import pytest

from authcore.application.login import (
    change_password,
    login,
    login_with_sms_code,
    logout,
    logout_everywhere,
    verify_sms_login,
)
from authcore.domain.entities import Principal
from authcore.domain.errors import AuthenticationError, LockedOut
from authcore.domain.result import Err, Ok


@pytest.fixture()
def do_login(uow_factory, issuer, login_guard, mfa, verify_password_stub):
    async def _login(email, password, **kwargs):
        return await login(
            uow_factory=uow_factory,
            issuer=issuer,
            login_guard=login_guard,
            mfa=mfa,
            email=email,
            password=password,
            verify_password=verify_password_stub,
            **kwargs,
        )

    return _login


async def test_login_returns_tokens_for_good_credentials(do_login, issuer, principal):
    result = await do_login("  p@EXAMPLE.com ", "s3cret")

    assert not result.mfa_required
    verified = await issuer.verify(result.tokens.access.token, "access")
    assert isinstance(verified, Ok)
    assert verified.value.sub == principal.id


async def test_remember_me_extends_refresh_lifetime(do_login, issuer, principal):
    result = await do_login("p@example.com", "s3cret", remember_me=True)

    assert result.tokens.refresh.claims.lifetime_seconds == issuer.policy.remember_me_ttl_seconds


async def test_unknown_email_still_runs_a_password_check(do_login, verify_password_stub):
    with pytest.raises(AuthenticationError):
        await do_login("nobody@example.com", "s3cret")

    assert verify_password_stub.calls == [("s3cret", None)]


async def test_wrong_password_is_mirrored_on_the_record(do_login, credentials, principal):
    with pytest.raises(AuthenticationError):
        await do_login("p@example.com", "wrong")

    assert credentials.principals[principal.id].failed_logins == 1
    assert credentials.principals[principal.id].locked_until is None


async def test_lockout_after_five_failures_even_with_right_password(
    do_login, credentials, principal
):
    for _ in range(5):
        with pytest.raises(AuthenticationError):
            await do_login("p@example.com", "wrong")
    assert credentials.principals[principal.id].locked_until is not None

    with pytest.raises(LockedOut) as ei:
        await do_login("p@example.com", "s3cret")
    assert ei.value.retry_after == 900


async def test_lockout_does_not_reveal_account_existence(do_login, principal):
    for email in ("p@example.com", "ghost@example.com"):
        for _ in range(5):
            with pytest.raises(AuthenticationError):
                await do_login(email, "wrong")
        with pytest.raises(LockedOut) as ei:
            await do_login(email, "wrong")
        assert ei.value.retry_after == 900


async def test_lockout_expires(do_login, clock, principal):
    for _ in range(5):
        with pytest.raises(AuthenticationError):
            await do_login("p@example.com", "wrong")

    clock.advance(901)
    result = await do_login("p@example.com", "s3cret")

    assert result.tokens is not None


async def test_success_clears_failure_mirror(do_login, credentials, principal):
    for _ in range(2):
        with pytest.raises(AuthenticationError):
            await do_login("p@example.com", "wrong")

    await do_login("p@example.com", "s3cret")

    assert credentials.principals[principal.id].failed_logins == 0


async def test_active_totp_factor_requires_a_second_step(do_login, mfa, principal, totp):
    await mfa.begin_enrollment(principal.id, "totp")
    await mfa.activate(principal.id, totp.valid_code)

    challenge = await do_login("p@example.com", "s3cret")
    assert challenge.mfa_required
    assert challenge.mfa_method == "totp"
    assert challenge.dispatch is None

    with pytest.raises(AuthenticationError):
        await do_login("p@example.com", "s3cret", otp_code="111111")

    result = await do_login("p@example.com", "s3cret", otp_code=totp.valid_code)
    assert result.tokens is not None


async def test_pending_factor_is_ignored_at_login(do_login, mfa, principal):
    await mfa.begin_enrollment(principal.id, "totp")

    result = await do_login("p@example.com", "s3cret")

    assert not result.mfa_required


async def test_active_sms_factor_dispatches_a_code(do_login, mfa, credentials, delivery):
    sms = credentials.add(
        Principal(id="p-2", email="sms@example.com", phone="+1555", phone_verified=True)
    )
    await mfa.begin_enrollment(sms.id, "sms")
    await mfa.activate(sms.id, delivery.approved_code)

    challenge = await do_login("sms@example.com", "s3cret")

    assert challenge.mfa_method == "sms"
    assert challenge.dispatch.expires_in == 600
    assert len(delivery.sent) == 2


async def test_logout_revokes_access_and_refresh(issuer, registry, principal):
    pair = issuer.issue_pair(principal)
    claims = (await issuer.verify(pair.access.token, "access")).unwrap()

    await logout(
        issuer=issuer,
        registry=registry,
        access_claims=claims,
        refresh_token=pair.refresh.token,
    )

    assert isinstance(await issuer.verify(pair.access.token, "access"), Err)
    assert isinstance(await issuer.verify(pair.refresh.token, "refresh"), Err)


async def test_logout_ignores_someone_elses_refresh_token(issuer, registry, credentials, principal):
    other = credentials.add(Principal(id="p-9", email="other@example.com"))
    mine = issuer.issue(principal, "access")
    theirs = issuer.issue(other, "refresh")

    await logout(
        issuer=issuer,
        registry=registry,
        access_claims=mine.claims,
        refresh_token=theirs.token,
    )

    assert isinstance(await issuer.verify(theirs.token, "refresh"), Ok)


async def test_logout_everywhere_bumps_version(uow_factory, issuer, credentials, principal):
    pair = issuer.issue_pair(principal)

    version = await logout_everywhere(uow_factory, principal.id)

    assert version == 2
    assert isinstance(await issuer.verify(pair.access.token, "access"), Err)
    assert isinstance(await issuer.verify(pair.refresh.token, "refresh"), Err)


async def test_change_password(
    uow_factory, issuer, credentials, principal, verify_password_stub, hash_password_stub
):
    pair = issuer.issue_pair(principal)

    with pytest.raises(AuthenticationError):
        await change_password(
            uow_factory,
            principal.id,
            "wrong",
            "n3w-password",
            verify_password=verify_password_stub,
            hash_password=hash_password_stub,
        )

    version = await change_password(
        uow_factory,
        principal.id,
        "s3cret",
        "n3w-password",
        verify_password=verify_password_stub,
        hash_password=hash_password_stub,
    )

    assert version == 2
    assert credentials.hashes[principal.id] == "hashed-n3w-password"
    assert isinstance(await issuer.verify(pair.access.token, "access"), Err)


async def test_logout_everywhere_for_removed_principal_is_unauthorized(
    uow_factory, credentials, principal
):
    del credentials.principals[principal.id]

    with pytest.raises(AuthenticationError):
        await logout_everywhere(uow_factory, principal.id)


async def test_second_factor_lockout_looks_like_a_plain_failure(do_login, mfa, principal, totp):
    await mfa.begin_enrollment(principal.id, "totp")
    await mfa.activate(principal.id, totp.valid_code)
    for _ in range(3):
        with pytest.raises(AuthenticationError):
            await do_login("p@example.com", "s3cret", otp_code="111111")

    with pytest.raises(AuthenticationError) as ei:
        await do_login("p@example.com", "s3cret", otp_code=totp.valid_code)

    assert not isinstance(ei.value, LockedOut)


@pytest.fixture()
def phone_principal(credentials):
    return credentials.add(
        Principal(
            id="p-3",
            email="phone@example.com",
            phone="+1 (555) 000-2222",
            phone_verified=True,
        )
    )


@pytest.fixture()
def phone_login(uow_factory, issuer, mfa):
    async def _send(phone):
        return await login_with_sms_code(uow_factory=uow_factory, mfa=mfa, phone=phone)

    async def _verify(phone, code, **kwargs):
        return await verify_sms_login(
            uow_factory=uow_factory, issuer=issuer, mfa=mfa, phone=phone, code=code, **kwargs
        )

    return _send, _verify


async def test_sms_login_sends_code_and_issues_tokens(
    phone_login, issuer, delivery, phone_principal
):
    send, verify = phone_login

    assert await send("+15550002222") == 600
    assert delivery.sent == [("sms", "+1 (555) 000-2222")]

    pair = await verify("+1 555 000 2222", delivery.approved_code)

    assert (await issuer.verify(pair.access.token, "access")).unwrap().sub == phone_principal.id


async def test_sms_login_answers_unknown_numbers_the_same_way(
    phone_login, delivery, phone_principal
):
    send, verify = phone_login

    known = await send("+15550002222")
    unknown = await send("+15559999999")

    assert known == unknown
    assert len(delivery.sent) == 1
    with pytest.raises(AuthenticationError):
        await verify("+15559999999", delivery.approved_code)
    assert delivery.checks == []


async def test_sms_login_locks_the_number_before_reaching_delivery(
    phone_login, delivery, counter, phone_principal
):
    send, verify = phone_login
    for _ in range(3):
        with pytest.raises(AuthenticationError):
            await verify("+15550002222", "000000")

    with pytest.raises(LockedOut) as ei:
        await verify("+15550002222", delivery.approved_code)
    with pytest.raises(LockedOut):
        await send("+15550002222")

    assert ei.value.retry_after == 1800
    assert "otp:+15550002222" in counter.locks
    assert len(delivery.checks) == 3
    assert delivery.sent == []


async def test_sms_login_is_refused_for_authenticator_app_users(
    phone_login, mfa, totp, delivery, credentials
):
    app_user = credentials.add(
        Principal(id="p-4", email="app@example.com", phone="+15550003333", phone_verified=True)
    )
    await mfa.begin_enrollment(app_user.id, "totp")
    await mfa.activate(app_user.id, totp.valid_code)
    send, verify = phone_login

    await send("+15550003333")

    assert delivery.sent == []
    with pytest.raises(AuthenticationError):
        await verify("+15550003333", delivery.approved_code)
