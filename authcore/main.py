import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from authcore.infrastructure.db.pool import close_pool, open_pool
from authcore.infrastructure.redis_cache.pool import close_redis, get_redis
from authcore.logging import setup_logging
from authcore.presentation.api import api
from authcore.settings import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await open_pool()
    get_redis()
    logger.info("api started", extra={"env": settings.app_env})
    try:
        yield
    finally:
        await close_redis()
        await close_pool()
        logger.info("api stopped")


def create_app() -> FastAPI:
    setup_logging(settings.log_level)
    app = FastAPI(title="Account Auth API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.include_router(api)
    return app


app = create_app()
