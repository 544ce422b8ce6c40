from datetime import timedelta

import pytest

from authcore.application.revocation import RevocationStatus
from authcore.domain.errors import DependencyUnavailable


async def test_revoke_writes_both_stores_with_remaining_ttl(registry, cache, revocations, clock):
    expires_at = clock() + timedelta(seconds=600)

    await registry.revoke("j1", "access", expires_at, reason="logout")

    assert cache.ttl("j1") == 600
    record, reason = revocations.records["j1"]
    assert record.expires_at == expires_at
    assert reason == "logout"
    assert await registry.lookup("j1") is RevocationStatus.REVOKED


async def test_revoking_an_expired_token_is_a_noop(registry, cache, revocations, clock):
    await registry.revoke("j-old", "refresh", clock() - timedelta(seconds=1))

    assert "j-old" not in cache.entries
    assert revocations.records == {}


async def test_cache_write_failure_is_not_fatal(registry, cache, revocations, clock):
    cache.down = True

    await registry.revoke("j2", "access", clock() + timedelta(seconds=60))

    assert "j2" in revocations.records


async def test_durable_write_is_retried_then_surfaces(registry, revocations, clock):
    revocations.fail_inserts = True

    with pytest.raises(DependencyUnavailable):
        await registry.revoke("j3", "access", clock() + timedelta(seconds=60))
    assert revocations.insert_calls == 3


async def test_cache_miss_reads_through_and_heals(registry, cache, revocations, clock):
    cache.down = True
    await registry.revoke("j4", "refresh", clock() + timedelta(seconds=300))
    cache.down = False
    assert "j4" not in cache.entries

    assert await registry.lookup("j4") is RevocationStatus.REVOKED
    assert cache.ttl("j4") == 300


async def test_expired_durable_record_is_not_revoked(registry, cache, revocations, clock):
    await registry.revoke("j5", "access", clock() + timedelta(seconds=10))
    clock.advance(11)
    cache.entries.clear()

    assert await registry.lookup("j5") is RevocationStatus.NOT_REVOKED
    assert "j5" not in cache.entries


async def test_unknown_jti_is_not_revoked(registry):
    assert await registry.lookup("never-seen") is RevocationStatus.NOT_REVOKED
    assert await registry.is_revoked("never-seen") is False


async def test_cache_outage_makes_status_unknown(registry, cache):
    cache.down = True

    assert await registry.lookup("anything") is RevocationStatus.UNKNOWN
    assert await registry.is_revoked("anything") is True


async def test_store_outage_on_cache_miss_makes_status_unknown(registry, revocations):
    revocations.down = True

    assert await registry.lookup("anything") is RevocationStatus.UNKNOWN


async def test_claim_is_single_use(registry, revocations, clock):
    expires_at = clock() + timedelta(days=7)

    assert await registry.claim("r1", "refresh", expires_at) is True
    assert await registry.claim("r1", "refresh", expires_at) is False
    assert revocations.records["r1"][1] == "rotated"


async def test_claim_loses_to_durable_record(registry, cache, revocations, clock):
    expires_at = clock() + timedelta(days=7)
    await registry.claim("r2", "refresh", expires_at)
    cache.entries.clear()

    assert await registry.claim("r2", "refresh", expires_at) is False


async def test_purge_expired_removes_only_expired_rows(registry, revocations, clock):
    await registry.revoke("short", "access", clock() + timedelta(seconds=5))
    await registry.revoke("long", "refresh", clock() + timedelta(days=1))
    clock.advance(10)

    assert await registry.purge_expired() == 1
    assert set(revocations.records) == {"long"}
