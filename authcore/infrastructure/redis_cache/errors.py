from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from redis.exceptions import RedisError

from authcore.domain.errors import DependencyUnavailable


@asynccontextmanager
async def translate_redis_errors(what: str) -> AsyncIterator[None]:
    try:
        yield
    except RedisError as e:
        raise DependencyUnavailable(f"{what}: {e.__class__.__name__}") from e
