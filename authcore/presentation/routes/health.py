import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from psycopg import Error as PsycopgError
from psycopg_pool import PoolTimeout
from redis.exceptions import RedisError

from authcore.infrastructure.db.pool import get_pool
from authcore.infrastructure.redis_cache.pool import redis_ready

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/healthz")
async def healthz() -> dict:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz():
    checks: dict[str, str] = {}
    try:
        async with get_pool().connection() as conn:
            await conn.execute("SELECT 1")
        checks["database"] = "ok"
    except (PoolTimeout, PsycopgError) as e:
        logger.warning("database not ready", extra={"error": str(e)})
        checks["database"] = "unavailable"
    try:
        await redis_ready()
        checks["redis"] = "ok"
    except RedisError as e:
        logger.warning("redis not ready", extra={"error": str(e)})
        checks["redis"] = "unavailable"

    ready = all(v == "ok" for v in checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ok" if ready else "degraded", "checks": checks},
    )
