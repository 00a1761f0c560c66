"""Steps shared by the login and refresh workflows."""

from __future__ import annotations

from datetime import datetime

from authcore.domain.entities import AccountToken, AccountTokenType, UserAccount
from authcore.domain.errors import PersistenceError
from authcore.domain.ports.token_issuer import IssuedTokens, TokenIssuerPort
from authcore.domain.ports.unit_of_work import UnitOfWorkPort


def start_session(
    account: UserAccount, token_issuer: TokenIssuerPort, now: datetime
) -> IssuedTokens:
    """Issue a token pair and make its refresh token the account's live one."""
    tokens = token_issuer.issue_token_pair(account, now=now)
    account.add_or_update_token(
        AccountToken(
            token_type=AccountTokenType.REFRESH_TOKEN,
            value=tokens.refresh_token,
            expires_at=tokens.refresh_expires_at,
        ),
        now=now,
    )
    return tokens


async def save_and_commit(transaction: UnitOfWorkPort, account: UserAccount) -> None:
    affected = await transaction.accounts.save(account)
    if affected < 0:
        raise PersistenceError(f"save reported {affected} rows for account {account.id}")
    await transaction.commit()
