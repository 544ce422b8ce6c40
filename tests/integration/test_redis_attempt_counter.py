import uuid

import pytest

from authcore.infrastructure.redis_cache.attempt_counter import RedisAttemptCounter


@pytest.mark.asyncio
async def test_threshold_locks_and_resets_count(redis_client):
    counter = RedisAttemptCounter(redis_client)
    key = f"login:{uuid.uuid4()}@example.com"

    try:
        states = [await counter.register_failure(key, 3, 60) for _ in range(3)]
        assert [s.count for s in states] == [1, 2, 3]
        assert [s.locked for s in states] == [False, False, True]

        assert 0 < await counter.lockout_remaining(key) <= 60
        assert await redis_client.exists(f"bruteforce:{key}") == 0

        # not counted while locked
        state = await counter.register_failure(key, 3, 60)
        assert state.count == 0
        assert state.locked
    finally:
        await redis_client.delete(f"bruteforce:{key}", f"bruteforce:lock:{key}")


@pytest.mark.asyncio
async def test_clear_forgets_failures(redis_client):
    counter = RedisAttemptCounter(redis_client)
    key = f"otp:{uuid.uuid4()}"

    try:
        await counter.register_failure(key, 3, 60)
        await counter.register_failure(key, 3, 60)
        assert await redis_client.hget(f"bruteforce:{key}", "count") == "2"
        assert await redis_client.hget(f"bruteforce:{key}", "last_attempt_at")

        await counter.clear(key)

        state = await counter.register_failure(key, 3, 60)
        assert state.count == 1
        assert await counter.lockout_remaining(key) == 0
    finally:
        await redis_client.delete(f"bruteforce:{key}", f"bruteforce:lock:{key}")
