from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from types import TracebackType
from typing import Optional, Type

import psycopg
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from authcore.domain.errors import PersistenceError
from authcore.domain.ports.unit_of_work import UnitOfWorkPort
from authcore.infrastructure.db.accounts_repo import PgAccountRepository
from authcore.infrastructure.db.outbox_repo import PgOutboxRepository

logger = logging.getLogger(__name__)


class PgUnitOfWork(UnitOfWorkPort):
    """
    Borrows one pooled connection per ``async with`` block. Repositories share
    that connection, so everything between enter and commit() is one
    transaction. Without a commit the block ends in a rollback.
    """

    accounts: PgAccountRepository
    outbox: PgOutboxRepository

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool
        self._lease: Optional[AbstractAsyncContextManager[psycopg.AsyncConnection]] = None
        self._conn: Optional[psycopg.AsyncConnection] = None
        self._committed = False

    async def __aenter__(self) -> "PgUnitOfWork":
        lease = self._pool.connection()
        try:
            conn = await lease.__aenter__()
        except (PoolTimeout, psycopg.Error) as e:
            raise PersistenceError(f"could not acquire a connection: {e}") from e
        self._lease, self._conn = lease, conn
        self._committed = False
        self.accounts = PgAccountRepository(conn)
        self.outbox = PgOutboxRepository(conn)
        return self

    async def __aexit__(
        self,
        exc_type: Type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        lease, conn = self._lease, self._conn
        self._lease, self._conn = None, None
        if conn is None or lease is None:
            return
        try:
            if exc_value is not None or not self._committed:
                try:
                    await conn.rollback()
                except psycopg.Error:
                    # a broken connection is discarded by the pool on return
                    logger.warning("rollback failed", exc_info=True)
        finally:
            self._committed = False
            await lease.__aexit__(exc_type, exc_value, traceback)

    async def commit(self) -> None:
        if self._conn is None:
            raise RuntimeError("commit() called outside of 'async with uow'")
        try:
            await self._conn.commit()
        except psycopg.Error as e:
            raise PersistenceError(f"commit failed: {e}") from e
        self._committed = True

    async def rollback(self) -> None:
        if self._conn is not None:
            await self._conn.rollback()
        self._committed = False
