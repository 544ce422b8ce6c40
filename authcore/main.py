from contextlib import asynccontextmanager

from fastapi import FastAPI

from authcore.infrastructure.db.pool import close_pool, get_pool
from authcore.infrastructure.http.client import (
    close_http_client,
    get_http_client,
    open_http_client,
)
from authcore.infrastructure.redis_cache.pool import close_redis, get_redis
from authcore.infrastructure.sms.http_verify_adapter import HttpVerifyAdapter
from authcore.logging import setup_logging
from authcore.presentation.api import api
from authcore.presentation.errors import register_exception_handlers
from authcore.settings import get_settings

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    pool = get_pool()
    if not getattr(pool, "is_open", False):
        await pool.open()

    await open_http_client(timeout=settings.dependency_timeout_seconds)

    get_redis()

    # ONE shared SMS adapter on the shared HTTP client
    sms_adapter = HttpVerifyAdapter(settings.sms_base_url, client=get_http_client())
    app.state.sms_adapter = sms_adapter

    try:
        yield
    finally:
        # shutdown
        await sms_adapter.aclose()  # it won't close the shared client
        await close_http_client()
        await close_redis()
        await close_pool()


def create_app() -> FastAPI:
    setup_logging(settings.log_level)
    app = FastAPI(title="Session & Trust API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    register_exception_handlers(app)
    app.include_router(api)
    return app


app = create_app()
