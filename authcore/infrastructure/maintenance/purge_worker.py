from __future__ import annotations

import asyncio
import logging
import signal
from contextlib import suppress
from functools import partial

from authcore.application.revocation import RevocationRegistry
from authcore.domain.errors import DependencyUnavailable
from authcore.domain.policy import RetryPolicy
from authcore.infrastructure.db.pool import close_pool, get_pool
from authcore.infrastructure.db.uow import PgUnitOfWork
from authcore.infrastructure.redis_cache.pool import close_redis, get_redis
from authcore.infrastructure.redis_cache.revocation_cache import RedisRevocationCache
from authcore.logging import setup_logging
from authcore.settings import get_settings

logger = logging.getLogger(__name__)


async def purge_forever(
    registry: RevocationRegistry, *, interval: float, stop: asyncio.Event
) -> None:
    """Purge expired revocation rows every `interval` seconds until `stop` is set."""
    while not stop.is_set():
        try:
            await registry.purge_expired()
        except DependencyUnavailable as e:
            logger.warning("purge: store unavailable, will retry", extra={"error": str(e)})
        with suppress(asyncio.TimeoutError):
            await asyncio.wait_for(stop.wait(), timeout=interval)


async def _run() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)

    pool = get_pool()
    if not getattr(pool, "is_open", False):
        await pool.open()
    logger.info("purge worker: pool opened")

    registry = RevocationRegistry(
        cache=RedisRevocationCache(get_redis()),
        uow_factory=partial(PgUnitOfWork, pool),
        retry_policy=RetryPolicy(
            attempts=settings.dependency_retry_attempts,
            base=settings.dependency_retry_base_seconds,
        ),
        timeout=settings.dependency_timeout_seconds,
    )

    stop = asyncio.Event()

    def _on_signal(*_: object) -> None:
        logger.info("purge worker: stop signal received")
        stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, _on_signal)

    logger.info(
        "purge worker: started",
        extra={"interval_seconds": settings.revocation_purge_interval_seconds},
    )
    await purge_forever(
        registry, interval=settings.revocation_purge_interval_seconds, stop=stop
    )

    await close_redis()
    await close_pool()
    logger.info("purge worker: stopped cleanly")


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
