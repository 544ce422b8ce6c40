import pytest

from authcore.domain.errors import DependencyUnavailable, LockedOut


async def test_locks_after_threshold_with_retry_after(login_guard):
    for _ in range(4):
        state = await login_guard.record_failure("a@b.c")
        assert not state.locked
        await login_guard.ensure_not_locked("a@b.c")

    state = await login_guard.record_failure("a@b.c")
    assert state.locked
    assert state.count == 5

    with pytest.raises(LockedOut) as ei:
        await login_guard.ensure_not_locked("a@b.c")
    assert ei.value.retry_after == 900


async def test_lock_expires_after_lockout_period(login_guard, clock):
    for _ in range(5):
        await login_guard.record_failure("a@b.c")

    clock.advance(899)
    assert await login_guard.is_locked("a@b.c")
    clock.advance(2)
    assert not await login_guard.is_locked("a@b.c")


async def test_success_resets_the_count(login_guard):
    for _ in range(4):
        await login_guard.record_failure("a@b.c")
    await login_guard.record_success("a@b.c")

    state = await login_guard.record_failure("a@b.c")
    assert state.count == 1
    assert not state.locked


async def test_failures_while_locked_are_not_counted(login_guard, counter, clock):
    for _ in range(5):
        await login_guard.record_failure("a@b.c")
    state = await login_guard.record_failure("a@b.c")
    assert state.count == 0
    assert state.locked

    clock.advance(901)
    state = await login_guard.record_failure("a@b.c")
    assert state.count == 1


async def test_channels_are_independent(login_guard, otp_guard):
    for _ in range(3):
        await otp_guard.record_failure("p-1")

    assert await otp_guard.is_locked("p-1")
    assert not await login_guard.is_locked("p-1")
    assert otp_guard.key("p-1") == "otp:p-1"
    assert login_guard.key("p-1") == "login:p-1"


async def test_counter_outage_surfaces_dependency_unavailable(login_guard, counter):
    counter.down = True

    with pytest.raises(DependencyUnavailable):
        await login_guard.ensure_not_locked("a@b.c")
