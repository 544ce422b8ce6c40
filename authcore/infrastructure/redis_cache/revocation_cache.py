from __future__ import annotations

from redis.asyncio import Redis

from authcore.domain.ports.revocation_cache import RevocationCachePort
from authcore.infrastructure.redis_cache.errors import translate_redis_errors


class RedisRevocationCache(RevocationCachePort):
    """One string key per revoked jti; the value is the token kind."""

    def __init__(self, redis: Redis, *, key_prefix: str = "revocation:") -> None:
        self._redis = redis
        self._prefix = key_prefix

    def _key(self, jti: str) -> str:
        return f"{self._prefix}{jti}"

    async def mark_revoked(self, jti: str, kind: str, ttl_seconds: int) -> None:
        async with translate_redis_errors("revocation cache set"):
            await self._redis.set(self._key(jti), kind, ex=ttl_seconds)

    async def mark_revoked_if_absent(self, jti: str, kind: str, ttl_seconds: int) -> bool:
        async with translate_redis_errors("revocation cache set nx"):
            created = await self._redis.set(self._key(jti), kind, ex=ttl_seconds, nx=True)
        return bool(created)

    async def is_revoked(self, jti: str) -> bool:
        async with translate_redis_errors("revocation cache exists"):
            return int(await self._redis.exists(self._key(jti))) == 1

    async def release(self, jti: str) -> None:
        async with translate_redis_errors("revocation cache delete"):
            await self._redis.delete(self._key(jti))
