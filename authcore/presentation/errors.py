from typing import NoReturn

from fastapi import HTTPException, status

from authcore.application.contracts import ErrorCode, OperationResult

_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.ACCOUNT_NOT_FOUND: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.INVALID_OTP: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.DUPLICATE_ACCOUNT: status.HTTP_409_CONFLICT,
    ErrorCode.ACCOUNT_LOCKED: status.HTTP_423_LOCKED,
    ErrorCode.PERSISTENCE_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def http_status_for(code: ErrorCode | None) -> int:
    return _STATUS_BY_CODE.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def raise_for_failure(result: OperationResult) -> None:
    if not result.success:
        raise_http_error(result.code, result.message or "")


def raise_http_error(code: ErrorCode | None, message: str) -> NoReturn:
    raise HTTPException(
        status_code=http_status_for(code),
        detail={"code": code.value if code else None, "message": message},
    )
