from pathlib import Path

import psycopg
import pytest
import pytest_asyncio
from psycopg_pool import AsyncConnectionPool, PoolTimeout
from redis.asyncio import Redis
from redis.exceptions import RedisError

from authcore.settings import get_settings

MIGRATIONS = sorted((Path(__file__).parents[2] / "migrations").glob("*.sql"))


@pytest_asyncio.fixture
async def redis_client():
    r = Redis.from_url(
        get_settings().redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=1,
    )
    try:
        await r.ping()
    except (RedisError, OSError):
        await r.aclose()
        pytest.skip("redis not reachable")
    try:
        yield r
    finally:
        await r.aclose()


@pytest_asyncio.fixture
async def pg_pool():
    pool = AsyncConnectionPool(
        get_settings().database_url, min_size=1, max_size=4, timeout=2, open=False
    )
    try:
        await pool.open(wait=True, timeout=2)
    except (psycopg.OperationalError, PoolTimeout) as e:
        await pool.close()
        pytest.skip(f"postgres not reachable: {e.__class__.__name__}")
    async with pool.connection() as conn:
        for path in MIGRATIONS:
            await conn.execute(path.read_text(encoding="utf-8"))
        await conn.commit()
    try:
        yield pool
    finally:
        await pool.close()
