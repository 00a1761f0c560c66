from __future__ import annotations

from typing import Optional

import httpx

from authcore.settings import get_settings

# outbound calls go to a single SMS gateway
_LIMITS = httpx.Limits(max_connections=20, max_keepalive_connections=5)

_client: Optional[httpx.AsyncClient] = None


async def open_http_client(timeout: float | None = None) -> httpx.AsyncClient:
    """Build the shared AsyncClient on first call and return it afterwards."""
    global _client
    if _client is None:
        seconds = get_settings().http_timeout_seconds if timeout is None else timeout
        _client = httpx.AsyncClient(timeout=httpx.Timeout(seconds), limits=_LIMITS)
    return _client


def get_http_client() -> httpx.AsyncClient:
    if _client is None:
        raise RuntimeError("shared HTTP client is not open; call open_http_client() first")
    return _client


async def close_http_client() -> None:
    global _client
    client, _client = _client, None
    if client is not None:
        await client.aclose()
