from __future__ import annotations

from types import TracebackType
from typing import Protocol, Type

from authcore.domain.ports.account_repository import AccountRepositoryPort
from authcore.domain.ports.outbox_repository import OutboxRepositoryPort


class UnitOfWorkPort(Protocol):
    """
    One transaction around a use case.

        async with uow as tx:
            account = await tx.accounts.find_by_phone(phone, include_tokens=True, for_update=True)
            account.record_failed_attempt()
            await tx.accounts.save(account)
            await tx.commit()

    Leaving the block without commit() (early return, exception, task
    cancellation) rolls everything back.
    """

    accounts: AccountRepositoryPort
    outbox: OutboxRepositoryPort

    async def __aenter__(self) -> "UnitOfWorkPort": ...

    async def __aexit__(
        self,
        exc_type: Type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...
