from __future__ import annotations

import asyncio
import logging
import signal
from contextlib import suppress

from psycopg_pool import AsyncConnectionPool

from authcore.application.purge_expired_tokens import purge_expired_tokens
from authcore.domain.errors import PersistenceError
from authcore.infrastructure.db.pool import close_pool, open_pool
from authcore.infrastructure.db.uow import PgUnitOfWork
from authcore.infrastructure.http.client import (
    close_http_client,
    get_http_client,
    open_http_client,
)
from authcore.infrastructure.outbox.dispatcher import OutboxDispatcher, RetryPolicy
from authcore.infrastructure.sms.http_sms_adapter import HttpSmsAdapter
from authcore.logging import setup_logging
from authcore.settings import get_settings

logger = logging.getLogger(__name__)


async def purge_tokens_forever(pool: AsyncConnectionPool, interval_seconds: float) -> None:
    """Drop expired account tokens every `interval_seconds`."""
    while True:
        try:
            await purge_expired_tokens(PgUnitOfWork(pool))
        except PersistenceError:
            logger.exception("token purge failed; will retry next round")
        await asyncio.sleep(interval_seconds)


async def _run() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)

    pool = await open_pool()
    logger.info("worker: pool opened")

    await open_http_client()
    sms = HttpSmsAdapter(base_url=settings.sms_base_url, client=get_http_client())
    dispatcher = OutboxDispatcher(
        pool=pool,
        sms=sms,
        batch_size=10,
        poll_interval=settings.outbox_poll_interval_ms / 1000,
        retry_policy=RetryPolicy(base=2, max_delay=300),
    )

    stop = asyncio.Event()

    def _on_signal(*_: object) -> None:
        logger.info("worker: stop signal received")
        stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, _on_signal)

    tasks = [
        asyncio.create_task(dispatcher.run_forever()),
        asyncio.create_task(
            purge_tokens_forever(pool, settings.token_purge_interval_seconds)
        ),
    ]
    logger.info("worker: started dispatcher and token purge loops")

    await stop.wait()

    for task in tasks:
        task.cancel()
    for task in tasks:
        with suppress(asyncio.CancelledError):
            await task

    await sms.aclose()
    await close_http_client()
    await close_pool()
    logger.info("worker: stopped cleanly")


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
