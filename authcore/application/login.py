import logging
from typing import Callable

from authcore.application.contracts import (
    ErrorCode,
    LoginOutcome,
    LoginRequest,
    OperationResult,
)
from authcore.application.sessions import save_and_commit, start_session
from authcore.domain.errors import PersistenceError
from authcore.domain.ports.otp_store import OtpStorePort
from authcore.domain.ports.token_issuer import TokenIssuerPort
from authcore.domain.ports.unit_of_work import UnitOfWorkPort
from authcore.domain.services import mask_secret, utcnow

logger = logging.getLogger(__name__)


async def login(
    uow: UnitOfWorkPort,
    request: LoginRequest,
    verify_password: Callable[[str, str, str | None], bool],
    token_issuer: TokenIssuerPort,
    otp_store: OtpStorePort,
) -> OperationResult[LoginOutcome]:
    """
    Password login with lockout and OTP escalation.

    Order matters: the lockout check runs before any credential check, and the
    OTP-required answer is returned before the password is looked at, so an OTP
    challenge never counts as a failed attempt.
    """
    if request is None:
        raise ValueError("login request is required")

    phone_number = (request.phone_number or "").strip()
    otp_code = (request.otp_code or "").strip()
    logger.info("login attempt", extra={"phone": mask_secret(phone_number)})

    if not phone_number or not request.password:
        return OperationResult.fail(
            ErrorCode.INVALID_INPUT, "Phone number and password are required."
        )

    now = utcnow()
    try:
        async with uow as transaction:
            account = await transaction.accounts.find_by_phone(
                phone_number, include_tokens=True, for_update=True
            )
            if account is None:
                return OperationResult.fail(
                    ErrorCode.ACCOUNT_NOT_FOUND, "Account not found."
                )

            if account.is_locked_out(now):
                logger.info("login refused: locked out", extra={"account_id": account.id})
                return OperationResult.fail(
                    ErrorCode.ACCOUNT_LOCKED, "Account is locked out."
                )

            if account.force_otp_on_login and not otp_code:
                return OperationResult.ok(LoginOutcome.otp_required())

            if not verify_password(request.password, account.password_hash, account.salt):
                account.record_failed_attempt()
                await save_and_commit(transaction, account)
                logger.info(
                    "login refused: bad credentials",
                    extra={
                        "account_id": account.id,
                        "failed_count": account.access_failed_count,
                        "force_otp": account.force_otp_on_login,
                    },
                )
                return OperationResult.fail(
                    ErrorCode.INVALID_CREDENTIALS, "Invalid credentials."
                )

            if account.force_otp_on_login:
                if not await otp_store.verify_and_consume(account.id, otp_code):
                    logger.info("login refused: bad otp", extra={"account_id": account.id})
                    return OperationResult.fail(
                        ErrorCode.INVALID_OTP, "Invalid or expired verification code."
                    )

            account.record_success()
            tokens = start_session(account, token_issuer, now)
            await save_and_commit(transaction, account)
    except PersistenceError:
        logger.exception("login failed to persist")
        return OperationResult.fail(ErrorCode.PERSISTENCE_FAILURE, "Failed to save login state.")
    except Exception:
        logger.exception("unexpected error during login")
        return OperationResult.fail(ErrorCode.INTERNAL_ERROR, "Internal error.")

    logger.info("login succeeded", extra={"account_id": account.id})
    return OperationResult.ok(LoginOutcome.passed(account, tokens))
