from __future__ import annotations

import time

from redis.asyncio import Redis

from authcore.domain.entities import AttemptState
from authcore.domain.ports.attempt_counter import AttemptCounterPort
from authcore.infrastructure.redis_cache.errors import translate_redis_errors

_LUA_REGISTER_FAILURE = """
-- KEYS[1]: counter hash, KEYS[2]: lock key
-- ARGV[1]: max failures, ARGV[2]: lockout seconds, ARGV[3]: now (epoch seconds)
local locked_for = redis.call('TTL', KEYS[2])
if locked_for > 0 then
  return {0, locked_for}
end
local max_failures = tonumber(ARGV[1])
local lockout = tonumber(ARGV[2])
local count = redis.call('HINCRBY', KEYS[1], 'count', 1)
redis.call('HSET', KEYS[1], 'last_attempt_at', ARGV[3])
redis.call('EXPIRE', KEYS[1], lockout)
if count >= max_failures then
  redis.call('SET', KEYS[2], ARGV[3], 'EX', lockout)
  redis.call('DEL', KEYS[1])
  return {count, lockout}
end
return {count, 0}
"""


class RedisAttemptCounter(AttemptCounterPort):
    """
    Failure counters for lockout keys.

    bruteforce:<key> is a hash (count, last_attempt_at) that expires one
    lockout period after the last failure; bruteforce:lock:<key> exists while
    the key is locked.
    """

    def __init__(self, redis: Redis, *, key_prefix: str = "bruteforce:") -> None:
        self._redis = redis
        self._prefix = key_prefix

    def _counter_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _lock_key(self, key: str) -> str:
        return f"{self._prefix}lock:{key}"

    async def register_failure(
        self, key: str, max_failures: int, lockout_seconds: int
    ) -> AttemptState:
        async with translate_redis_errors("attempt counter increment"):
            count, retry_after = await self._redis.eval(
                _LUA_REGISTER_FAILURE,
                2,
                self._counter_key(key),
                self._lock_key(key),
                max_failures,
                lockout_seconds,
                int(time.time()),
            )
        return AttemptState(count=int(count), retry_after=int(retry_after))

    async def lockout_remaining(self, key: str) -> int:
        async with translate_redis_errors("attempt counter ttl"):
            ttl = int(await self._redis.ttl(self._lock_key(key)))
        # -2: no lock, -1: lock without expiry (never written by this class)
        return ttl if ttl > 0 else 0

    async def clear(self, key: str) -> None:
        async with translate_redis_errors("attempt counter clear"):
            await self._redis.delete(self._counter_key(key))
