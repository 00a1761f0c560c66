from __future__ import annotations

from typing import Optional

from redis.asyncio import Redis

from authcore.settings import get_settings

_client: Optional[Redis] = None


def get_redis() -> Redis:
    """Shared client, created on first use. Replies are decoded to ``str``."""
    global _client
    if _client is None:
        _client = Redis.from_url(
            get_settings().redis_url,
            decode_responses=True,
            health_check_interval=30,
        )
    return _client


async def redis_ready() -> bool:
    return bool(await get_redis().ping())


async def close_redis() -> None:
    global _client
    client, _client = _client, None
    if client is not None:
        await client.aclose()
