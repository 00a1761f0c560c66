# tests/integration/conftest.py
import pytest_asyncio
from redis.asyncio import Redis

from authcore.settings import get_settings


@pytest_asyncio.fixture
async def redis_client():
    r = Redis.from_url(get_settings().redis_url, encoding="utf-8", decode_responses=True)
    try:
        yield r
    finally:
        await r.aclose()
