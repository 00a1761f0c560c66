from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from authcore.domain.entities import AccountTokenType, UserAccount


class AccountRepositoryPort(Protocol):
    async def find_by_phone(
        self,
        phone_number: str,
        *,
        include_tokens: bool = False,
        for_update: bool = False,
    ) -> Optional[UserAccount]:
        """
        Fetch the account registered with `phone_number`, or None.
        include_tokens loads the owned token collection up front;
        for_update locks the row for the rest of the transaction.
        """

    async def find_by_id(
        self, account_id: int, *, include_tokens: bool = False
    ) -> Optional[UserAccount]:
        """Fetch an account by primary key, or None."""

    async def find_by_token_value(
        self, token_type: AccountTokenType, value: str
    ) -> Optional[UserAccount]:
        """
        Fetch (and lock) the account owning a token of `token_type` whose value
        is exactly `value`, with its tokens loaded. None if nobody owns it.
        """

    async def add(self, account: UserAccount) -> int:
        """
        Insert a new account (and its tokens), assigning `account.id`.
        Return the number of rows written; a negative value means failure.
        Raise AccountAlreadyExists if the phone number is taken.
        """

    async def save(self, account: UserAccount) -> int:
        """
        Write back every field of a loaded account and sync its tokens.
        Return the number of rows written; a negative value means failure.
        """

    async def delete_expired_tokens(self, before: datetime) -> int:
        """Drop token rows whose expiry is earlier than `before`."""
