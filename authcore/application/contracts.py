from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Generic, Optional, TypeVar

from authcore.domain.entities import AccountStatus, UserAccount
from authcore.domain.ports.token_issuer import IssuedTokens

T = TypeVar("T")


class ErrorCode(str, Enum):
    INVALID_CREDENTIALS = "1000"
    DUPLICATE_ACCOUNT = "1001"
    ACCOUNT_NOT_FOUND = "1002"
    ACCOUNT_LOCKED = "1004"
    INVALID_OTP = "1005"
    INVALID_TOKEN = "1006"
    INVALID_INPUT = "9900"
    PERSISTENCE_FAILURE = "9997"
    INTERNAL_ERROR = "9999"


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of a use case: either data, or an error code with a message."""

    success: bool
    data: Optional[T] = None
    code: Optional[ErrorCode] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> "OperationResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: ErrorCode, message: str) -> "OperationResult[T]":
        return cls(success=False, code=code, message=message)


@dataclass(frozen=True)
class RegistrationRequest:
    phone_number: str | None
    password: str | None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    display_name: str | None = None


@dataclass(frozen=True)
class LoginRequest:
    phone_number: str | None
    password: str | None
    otp_code: str | None = None


@dataclass(frozen=True)
class AccountView:
    id: int
    phone_number: str
    email: str | None
    first_name: str | None
    last_name: str | None
    display_name: str | None
    status: AccountStatus
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_account(cls, account: UserAccount) -> "AccountView":
        return cls(
            id=account.id,
            phone_number=account.phone_number,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            display_name=account.display_name,
            status=account.status,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


@dataclass(frozen=True)
class LoginOutcome:
    success: bool
    needs_otp: bool = False
    account: AccountView | None = None
    access_token: str | None = None
    access_expires_at: datetime | None = None
    refresh_token: str | None = None
    refresh_expires_at: datetime | None = None

    @classmethod
    def otp_required(cls) -> "LoginOutcome":
        return cls(success=False, needs_otp=True)

    @classmethod
    def passed(cls, account: UserAccount, tokens: IssuedTokens) -> "LoginOutcome":
        return cls(
            success=True,
            account=AccountView.from_account(account),
            access_token=tokens.access_token,
            access_expires_at=tokens.access_expires_at,
            refresh_token=tokens.refresh_token,
            refresh_expires_at=tokens.refresh_expires_at,
        )
