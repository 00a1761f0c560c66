import logging
from typing import Callable

from authcore.application.contracts import ErrorCode, OperationResult, RegistrationRequest
from authcore.domain.entities import UserAccount
from authcore.domain.errors import AccountAlreadyExists, PersistenceError
from authcore.domain.ports.unit_of_work import UnitOfWorkPort
from authcore.domain.services import (
    MAX_PASSWORD_BYTES,
    is_valid_phone_number,
    mask_secret,
    password_fits_hash,
)

logger = logging.getLogger(__name__)


async def register_account(
    uow: UnitOfWorkPort,
    request: RegistrationRequest,
    hash_password: Callable[..., tuple[str, str | None]],
) -> OperationResult[UserAccount]:
    if request is None:
        raise ValueError("registration request is required")

    phone_number = (request.phone_number or "").strip()
    logger.info("registering account", extra={"phone": mask_secret(phone_number)})

    if not is_valid_phone_number(phone_number):
        return OperationResult.fail(ErrorCode.INVALID_INPUT, "Invalid phone number format.")
    if not request.password or not request.password.strip():
        return OperationResult.fail(ErrorCode.INVALID_INPUT, "Password cannot be empty.")
    if not password_fits_hash(request.password):
        return OperationResult.fail(
            ErrorCode.INVALID_INPUT,
            f"Password cannot exceed {MAX_PASSWORD_BYTES} bytes.",
        )

    try:
        async with uow as transaction:
            existing = await transaction.accounts.find_by_phone(phone_number)
            if existing is not None:
                return OperationResult.fail(
                    ErrorCode.DUPLICATE_ACCOUNT,
                    "An account with this phone number already exists.",
                )

            password_hash, salt = hash_password(request.password)
            account = UserAccount.register(phone_number, password_hash, salt)
            account.update_profile(
                request.first_name, request.last_name, request.display_name
            )
            account.update_email(request.email)

            affected = await transaction.accounts.add(account)
            if affected < 0:
                raise PersistenceError(f"add reported {affected} rows")
            await transaction.commit()
    except AccountAlreadyExists:
        # lost the race against a concurrent registration of the same phone
        return OperationResult.fail(
            ErrorCode.DUPLICATE_ACCOUNT,
            "An account with this phone number already exists.",
        )
    except PersistenceError:
        logger.exception("account registration failed to persist")
        return OperationResult.fail(
            ErrorCode.PERSISTENCE_FAILURE, "Failed to register account."
        )
    except Exception:
        logger.exception("unexpected error during registration")
        return OperationResult.fail(ErrorCode.INTERNAL_ERROR, "Internal error.")

    logger.info("account registered", extra={"account_id": account.id})
    return OperationResult.ok(account)
