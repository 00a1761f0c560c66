from __future__ import annotations

from typing import Optional

from psycopg_pool import AsyncConnectionPool

from authcore.settings import get_settings

CONNECT_TIMEOUT_SECONDS = 3
ACQUIRE_TIMEOUT_SECONDS = 5.0

_pool: Optional[AsyncConnectionPool] = None


def get_pool() -> AsyncConnectionPool:
    """
    Return the process-wide pool, building it unopened on first use.

    Connections handed out by the pool start a transaction implicitly; the
    unit of work decides whether it is committed or rolled back.
    """
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = AsyncConnectionPool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            timeout=ACQUIRE_TIMEOUT_SECONDS,
            kwargs={"connect_timeout": CONNECT_TIMEOUT_SECONDS},
            open=False,
        )
    return _pool


async def open_pool() -> AsyncConnectionPool:
    pool = get_pool()
    if pool.closed:
        await pool.open()
    return pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
