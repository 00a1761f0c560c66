import logging

import authcore.domain.services as domain_services
from authcore.application.contracts import ErrorCode, OperationResult
from authcore.domain.errors import PersistenceError
from authcore.domain.ports.otp_store import OtpStorePort
from authcore.domain.ports.unit_of_work import UnitOfWorkPort

logger = logging.getLogger(__name__)

LOGIN_OTP_TOPIC = "account.login_otp"


async def request_login_otp(
    uow: UnitOfWorkPort,
    otp_store: OtpStorePort,
    phone_number: str | None,
    code_ttl_seconds: int = 300,
) -> OperationResult[None]:
    """
    Issue a single-use login code for an account and queue it for SMS delivery.

    The outbox message is committed before the code's digest is written to the
    OTP store, so a failed commit leaves the previously issued code usable.
    Redis only keeps the salted digest; the plain code travels in the outbox
    payload, which is cleared once the message is dispatched.
    """
    phone_number = (phone_number or "").strip()
    if not domain_services.is_valid_phone_number(phone_number):
        return OperationResult.fail(ErrorCode.INVALID_INPUT, "Invalid phone number format.")

    generated_code = domain_services.generate_otp_code()
    salt_b64, digest_b64 = domain_services.make_code_digest(generated_code)

    try:
        async with uow as transaction:
            account = await transaction.accounts.find_by_phone(phone_number)
            if account is None:
                return OperationResult.fail(ErrorCode.ACCOUNT_NOT_FOUND, "Account not found.")
            if account.is_locked_out():
                return OperationResult.fail(ErrorCode.ACCOUNT_LOCKED, "Account is locked out.")

            await transaction.outbox.enqueue(
                topic=LOGIN_OTP_TOPIC,
                payload={
                    "to": account.phone_number,
                    "body": f"Your login code is {generated_code}. "
                    f"It expires in {max(code_ttl_seconds // 60, 1)} minute(s).",
                },
            )
            await transaction.commit()
        await otp_store.store_hashed_code(account.id, salt_b64, digest_b64, code_ttl_seconds)
    except PersistenceError:
        logger.exception("login otp request failed to persist")
        return OperationResult.fail(ErrorCode.PERSISTENCE_FAILURE, "Failed to queue code.")
    except Exception:
        logger.exception("unexpected error while issuing login otp")
        return OperationResult.fail(ErrorCode.INTERNAL_ERROR, "Internal error.")

    logger.info(
        "login otp queued",
        extra={"phone": domain_services.mask_secret(phone_number)},
    )
    return OperationResult.ok(None)
