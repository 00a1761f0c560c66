from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import dict_row

from authcore.domain.entities import (
    AccountStatus,
    AccountToken,
    AccountTokenType,
    UserAccount,
)
from authcore.domain.errors import AccountAlreadyExists, PersistenceError
from authcore.domain.ports.account_repository import AccountRepositoryPort

_ACCOUNT_COLUMNS = """
    a.id, a.phone_number, a.password_hash, a.salt, a.email,
    a.first_name, a.last_name, a.display_name, a.date_of_birth,
    a.profile_picture_url, a.lockout_enabled, a.lockout_end,
    a.access_failed_count, a.force_otp_on_login, a.status,
    a.created_at, a.updated_at
"""


@contextmanager
def _db_errors(action: str) -> Iterator[None]:
    """Translate driver errors into domain errors."""
    try:
        yield
    except pg_errors.UniqueViolation as e:
        raise AccountAlreadyExists(str(e)) from e
    except psycopg.Error as e:
        raise PersistenceError(f"{action} failed: {e}") from e


def _account_from_row(row: dict[str, Any]) -> UserAccount:
    return UserAccount(
        id=int(row["id"]),
        phone_number=str(row["phone_number"]),
        password_hash=str(row["password_hash"]),
        salt=row["salt"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        display_name=row["display_name"],
        date_of_birth=row["date_of_birth"],
        profile_picture_url=row["profile_picture_url"],
        lockout_enabled=bool(row["lockout_enabled"]),
        lockout_end=row["lockout_end"],
        access_failed_count=int(row["access_failed_count"] or 0),
        force_otp_on_login=bool(row["force_otp_on_login"]),
        status=AccountStatus(row["status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PgAccountRepository(AccountRepositoryPort):
    """
    Postgres implementation of AccountRepositoryPort.

    NOTE:
    - This repo is constructed with an *active async connection* supplied by the UoW.
    - It does not commit; the UnitOfWork controls the transaction boundary.
    - External logins live on the aggregate only; they are not persisted here.
    """

    def __init__(self, conn: psycopg.AsyncConnection) -> None:
        self._conn = conn

    async def find_by_phone(
        self,
        phone_number: str,
        *,
        include_tokens: bool = False,
        for_update: bool = False,
    ) -> Optional[UserAccount]:
        sql = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts a WHERE a.phone_number = %s"
        if for_update:
            sql += " FOR UPDATE"
        return await self._fetch_account(sql, (phone_number.strip(),), include_tokens)

    async def find_by_id(
        self, account_id: int, *, include_tokens: bool = False
    ) -> Optional[UserAccount]:
        sql = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts a WHERE a.id = %s"
        return await self._fetch_account(sql, (account_id,), include_tokens)

    async def find_by_token_value(
        self, token_type: AccountTokenType, value: str
    ) -> Optional[UserAccount]:
        sql = f"""
        SELECT {_ACCOUNT_COLUMNS}
        FROM accounts a
        JOIN account_tokens t ON t.account_id = a.id
        WHERE t.token_type = %s AND t.value = %s
        LIMIT 1
        FOR UPDATE OF a
        """
        return await self._fetch_account(
            sql, (AccountTokenType(token_type).value, value), include_tokens=True
        )

    async def add(self, account: UserAccount) -> int:
        sql = """
        INSERT INTO accounts (
            phone_number, password_hash, salt, email, first_name, last_name,
            display_name, date_of_birth, profile_picture_url, lockout_enabled,
            lockout_end, access_failed_count, force_otp_on_login, status
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING id, created_at, updated_at
        """
        with _db_errors("insert account"):
            async with self._conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql,
                    (
                        account.phone_number,
                        account.password_hash,
                        account.salt,
                        account.email,
                        account.first_name,
                        account.last_name,
                        account.display_name,
                        account.date_of_birth,
                        account.profile_picture_url,
                        account.lockout_enabled,
                        account.lockout_end,
                        account.access_failed_count,
                        account.force_otp_on_login,
                        account.status.value,
                    ),
                )
                row = await cur.fetchone()
            if not row:
                return -1

            account.id = int(row["id"])
            account.created_at = row["created_at"]
            account.updated_at = row["updated_at"]
            return 1 + await self._sync_tokens(account)

    async def save(self, account: UserAccount) -> int:
        if account.id is None:
            return -1

        sql = """
        UPDATE accounts
        SET password_hash = %s,
            salt = %s,
            email = %s,
            first_name = %s,
            last_name = %s,
            display_name = %s,
            date_of_birth = %s,
            profile_picture_url = %s,
            lockout_enabled = %s,
            lockout_end = %s,
            access_failed_count = %s,
            force_otp_on_login = %s,
            status = %s,
            updated_at = now()
        WHERE id = %s
        RETURNING updated_at
        """
        with _db_errors("update account"):
            async with self._conn.cursor() as cur:
                await cur.execute(
                    sql,
                    (
                        account.password_hash,
                        account.salt,
                        account.email,
                        account.first_name,
                        account.last_name,
                        account.display_name,
                        account.date_of_birth,
                        account.profile_picture_url,
                        account.lockout_enabled,
                        account.lockout_end,
                        account.access_failed_count,
                        account.force_otp_on_login,
                        account.status.value,
                        account.id,
                    ),
                )
                row = await cur.fetchone()
            if not row:
                return -1

            account.updated_at = row[0]
            return 1 + await self._sync_tokens(account)

    async def delete_expired_tokens(self, before: datetime) -> int:
        sql = """
        DELETE FROM account_tokens
        WHERE expires_at IS NOT NULL AND expires_at < %s
        """
        with _db_errors("purge tokens"):
            async with self._conn.cursor() as cur:
                await cur.execute(sql, (before,))
                return cur.rowcount

    # -- helpers ---------------------------------------------------------

    async def _fetch_account(
        self, sql: str, params: tuple, include_tokens: bool
    ) -> Optional[UserAccount]:
        with _db_errors("load account"):
            async with self._conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(sql, params)
                row = await cur.fetchone()
            if not row:
                return None

            account = _account_from_row(row)
            if include_tokens:
                account.tokens = await self._load_tokens(account.id)
            return account

    async def _load_tokens(self, account_id: int) -> list[AccountToken]:
        sql = """
        SELECT id, token_type, value, expires_at
        FROM account_tokens
        WHERE account_id = %s
        ORDER BY id
        """
        async with self._conn.cursor() as cur:
            await cur.execute(sql, (account_id,))
            rows = await cur.fetchall()

        return [
            AccountToken(
                id=int(id_),
                token_type=AccountTokenType(token_type),
                value=str(value),
                expires_at=expires_at,
            )
            for id_, token_type, value, expires_at in rows
        ]

    async def _sync_tokens(self, account: UserAccount) -> int:
        """Insert new token records, overwrite known ones. Returns rows written."""
        insert_sql = """
        INSERT INTO account_tokens (account_id, token_type, value, expires_at)
        VALUES (%s, %s, %s, %s)
        RETURNING id
        """
        update_sql = """
        UPDATE account_tokens
        SET value = %s, expires_at = %s
        WHERE id = %s AND account_id = %s
        """
        written = 0
        async with self._conn.cursor() as cur:
            for token in account.tokens:
                if token.id is None:
                    await cur.execute(
                        insert_sql,
                        (
                            account.id,
                            token.token_type.value,
                            token.value,
                            token.expires_at,
                        ),
                    )
                    row = await cur.fetchone()
                    token.id = int(row[0])
                    written += 1
                else:
                    await cur.execute(
                        update_sql,
                        (token.value, token.expires_at, token.id, account.id),
                    )
                    written += cur.rowcount
        return written
