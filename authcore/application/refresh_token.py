import logging

from authcore.application.contracts import ErrorCode, LoginOutcome, OperationResult
from authcore.application.sessions import save_and_commit, start_session
from authcore.domain.entities import AccountTokenType
from authcore.domain.errors import PersistenceError
from authcore.domain.ports.token_issuer import TokenIssuerPort
from authcore.domain.ports.unit_of_work import UnitOfWorkPort
from authcore.domain.services import utcnow

logger = logging.getLogger(__name__)


async def refresh_token(
    uow: UnitOfWorkPort,
    refresh_token: str | None,
    token_issuer: TokenIssuerPort,
) -> OperationResult[LoginOutcome]:
    """
    Exchange a live refresh token for a new pair. The presented value is
    overwritten, so it cannot be replayed. Failures here never count as
    failed logins.
    """
    logger.info("refreshing token")

    if not refresh_token or not refresh_token.strip():
        return OperationResult.fail(ErrorCode.INVALID_INPUT, "Refresh token cannot be empty.")

    now = utcnow()
    try:
        async with uow as transaction:
            account = await transaction.accounts.find_by_token_value(
                AccountTokenType.REFRESH_TOKEN, refresh_token
            )
            if account is None:
                return OperationResult.fail(ErrorCode.INVALID_TOKEN, "Invalid refresh token.")

            record = account.find_token(AccountTokenType.REFRESH_TOKEN, refresh_token)
            if record is None or record.has_expired(now):
                return OperationResult.fail(
                    ErrorCode.INVALID_TOKEN, "Refresh token has expired."
                )

            if account.is_locked_out(now):
                return OperationResult.fail(ErrorCode.ACCOUNT_LOCKED, "Account is locked out.")

            tokens = start_session(account, token_issuer, now)
            await save_and_commit(transaction, account)
    except PersistenceError:
        logger.exception("token refresh failed to persist")
        return OperationResult.fail(ErrorCode.PERSISTENCE_FAILURE, "Failed to save tokens.")
    except Exception:
        logger.exception("unexpected error during token refresh")
        return OperationResult.fail(ErrorCode.INTERNAL_ERROR, "Internal error.")

    logger.info("token refreshed", extra={"account_id": account.id})
    return OperationResult.ok(LoginOutcome.passed(account, tokens))
