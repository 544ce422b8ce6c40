from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import psycopg
from psycopg_pool import PoolTimeout

from authcore.domain.errors import DependencyUnavailable


@asynccontextmanager
async def translate_db_errors(what: str) -> AsyncIterator[None]:
    """Surface connection-level database failures as DependencyUnavailable."""
    try:
        yield
    except (psycopg.OperationalError, PoolTimeout) as e:
        raise DependencyUnavailable(f"{what}: {e.__class__.__name__}") from e
