import asyncio

import psycopg
import pytest
from psycopg_pool import PoolTimeout

from authcore.infrastructure.outbox.dispatcher import OutboxDispatcher
from tests.fakes import FakeSmsOK


class UnreachablePool:
    """Every connection request fails the way a dropped server or full pool does."""

    def __init__(self, error: Exception):
        self.error = error
        self.requests = 0

    def connection(self):
        self.requests += 1
        raise self.error


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        psycopg.OperationalError("server closed the connection unexpectedly"),
        PoolTimeout("couldn't get a connection after 5.00 sec"),
    ],
)
async def test_dispatcher_keeps_polling_through_database_errors(error):
    pool = UnreachablePool(error)
    dispatcher = OutboxDispatcher(pool=pool, sms=FakeSmsOK(), poll_interval=0.01)

    task = asyncio.create_task(dispatcher.run_forever())
    await asyncio.sleep(0.1)

    assert not task.done()
    assert pool.requests >= 2

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_single_round_still_surfaces_database_errors():
    dispatcher = OutboxDispatcher(
        pool=UnreachablePool(psycopg.OperationalError("gone")), sms=FakeSmsOK()
    )

    with pytest.raises(psycopg.OperationalError):
        await dispatcher._process_once()
