from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from authcore.domain.errors import InvalidInput, InvalidOperation
from authcore.domain.services import utcnow

# Consecutive failed logins before the account must pass an OTP challenge.
MAX_LOGIN_ATTEMPTS = 5
DEFAULT_TOKEN_LIFETIME = timedelta(hours=24)


class AccountStatus(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    FROZEN = "frozen"


class AccountTokenType(str, Enum):
    RESET_PASSWORD = "reset_password"
    EMAIL_VERIFICATION = "email_verification"
    PHONE_VERIFICATION = "phone_verification"
    TWO_FACTOR = "two_factor"
    REFRESH_TOKEN = "refresh_token"


class LoginProvider(str, Enum):
    WECHAT_MINI_PROGRAM = "wechat_mini_program"


def _require(value: str | None, message: str) -> str:
    if value is None or not value.strip():
        raise InvalidInput(message)
    return value


@dataclass
class AccountToken:
    """Purpose-tagged secret owned by an account (reset, verification, refresh...)."""

    token_type: AccountTokenType
    value: str
    expires_at: datetime | None = None
    id: int | None = None

    def __post_init__(self):
        _require(self.value, "token value cannot be empty")
        self.token_type = AccountTokenType(self.token_type)

    def update_value(self, value: str) -> None:
        self.value = _require(value, "token value cannot be empty")

    def set_expiry(self, expires_at: datetime) -> None:
        self.expires_at = expires_at

    def extend_expiry(self, extension: timedelta, now: datetime | None = None) -> None:
        base = self.expires_at or (now or utcnow())
        self.expires_at = base + extension

    def has_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at is not None and self.expires_at < (now or utcnow())


@dataclass
class ExternalLogin:
    """Third-party identity bound to an account (WeChat, ...)."""

    provider: LoginProvider
    provider_key: str
    provider_union_id: str | None = None
    nickname: str | None = None
    avatar_url: str | None = None
    extended_data: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    token_expires_at: datetime | None = None
    bound_at: datetime = field(default_factory=utcnow)
    last_login_at: datetime | None = None
    is_unbound: bool = False
    unbound_at: datetime | None = None
    id: int | None = None

    def __post_init__(self):
        _require(self.provider_key, "provider key cannot be empty")

    def update_profile(
        self,
        nickname: str | None,
        avatar_url: str | None,
        extended_data: str | None = None,
    ) -> None:
        self.nickname = nickname
        self.avatar_url = avatar_url
        if extended_data and extended_data.strip():
            self.extended_data = extended_data

    def update_tokens(
        self,
        access_token: str | None,
        refresh_token: str | None = None,
        expires_at: datetime | None = None,
    ) -> None:
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.token_expires_at = expires_at

    def record_login(self, now: datetime | None = None) -> None:
        self.last_login_at = now or utcnow()

    def unbind(self, now: datetime | None = None) -> None:
        if self.is_unbound:
            raise InvalidOperation("external login already unbound")
        self.is_unbound = True
        self.unbound_at = now or utcnow()
        # provider credentials are useless once unbound
        self.access_token = None
        self.refresh_token = None
        self.token_expires_at = None

    def rebind(self, now: datetime | None = None) -> None:
        if not self.is_unbound:
            raise InvalidOperation("external login is not unbound")
        now = now or utcnow()
        self.is_unbound = False
        self.bound_at = now
        self.last_login_at = now
        self.unbound_at = None


@dataclass
class UserAccount:
    """
    Aggregate root for a registered account.

    Fields are plain attributes so adapters can rehydrate them, but every state
    change goes through the named transitions below: lock/unlock,
    record_failed_attempt/record_success, add_or_update_token, etc.
    """

    phone_number: str
    password_hash: str
    salt: str | None = None
    id: int | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    display_name: str | None = None
    date_of_birth: datetime | None = None
    profile_picture_url: str | None = None
    lockout_enabled: bool = False
    lockout_end: datetime | None = None
    access_failed_count: int = 0
    force_otp_on_login: bool = False
    status: AccountStatus = AccountStatus.ACTIVE
    created_at: datetime | None = None
    updated_at: datetime | None = None
    tokens: list[AccountToken] = field(default_factory=list)
    external_logins: list[ExternalLogin] = field(default_factory=list)

    def __post_init__(self):
        self.phone_number = _require(
            self.phone_number, "phone number cannot be empty"
        ).strip()
        _require(self.password_hash, "password hash cannot be empty")
        if self.access_failed_count < 0:
            raise InvalidInput("access failed count cannot be negative")
        self.status = AccountStatus(self.status)

    @classmethod
    def register(
        cls, phone_number: str, password_hash: str, salt: str | None = None
    ) -> "UserAccount":
        return cls(phone_number=phone_number, password_hash=password_hash, salt=salt)

    # -- profile ---------------------------------------------------------

    def update_profile(
        self,
        first_name: str | None,
        last_name: str | None,
        display_name: str | None,
        date_of_birth: datetime | None = None,
    ) -> None:
        self.first_name = first_name or ""
        self.last_name = last_name or ""
        self.display_name = display_name or ""
        if date_of_birth is not None:
            self.date_of_birth = date_of_birth

    def update_email(self, email: str | None) -> None:
        self.email = email.strip().lower() if email else None

    def set_profile_picture(self, picture_url: str) -> None:
        self.profile_picture_url = _require(
            picture_url, "picture url cannot be empty"
        )

    def change_password(self, password_hash: str, salt: str | None = None) -> None:
        self.password_hash = _require(password_hash, "password hash cannot be empty")
        self.salt = salt

    def update_status(self, status: AccountStatus) -> None:
        self.status = AccountStatus(status)

    # -- lockout / risk state --------------------------------------------

    def lock(self, duration: timedelta, now: datetime | None = None) -> None:
        if duration <= timedelta(0):
            raise InvalidInput("lock duration must be positive")
        self.lockout_enabled = True
        self.lockout_end = (now or utcnow()) + duration

    def unlock(self) -> None:
        self.lockout_enabled = False
        self.lockout_end = None
        self.access_failed_count = 0

    def is_locked_out(self, now: datetime | None = None) -> bool:
        return (
            self.lockout_enabled
            and self.lockout_end is not None
            and self.lockout_end > (now or utcnow())
        )

    def record_failed_attempt(self) -> None:
        self.access_failed_count += 1
        if self.access_failed_count >= MAX_LOGIN_ATTEMPTS:
            self.mark_risky()

    def record_success(self) -> None:
        self.access_failed_count = 0
        self.mark_safe()

    def mark_risky(self) -> None:
        self.force_otp_on_login = True

    def mark_safe(self) -> None:
        self.force_otp_on_login = False

    # -- owned tokens ----------------------------------------------------

    def add_or_update_token(
        self, token: AccountToken, now: datetime | None = None
    ) -> AccountToken:
        """
        Attach `token`, or overwrite the live token of the same type in place.

        Expired tokens of that type are left untouched; they no longer count as
        the active one. Returns the record that now holds the value.
        """
        if token is None:
            raise InvalidInput("token is required")
        now = now or utcnow()
        existing = next(
            (
                t
                for t in self.tokens
                if t.token_type == token.token_type and not t.has_expired(now)
            ),
            None,
        )
        if existing is None:
            self.tokens.append(token)
            return token

        existing.update_value(token.value)
        existing.set_expiry(token.expires_at or now + DEFAULT_TOKEN_LIFETIME)
        return existing

    def get_token(
        self, token_type: AccountTokenType, now: datetime | None = None
    ) -> AccountToken | None:
        """Live token of the given type, if any."""
        now = now or utcnow()
        return next(
            (
                t
                for t in self.tokens
                if t.token_type == token_type and not t.has_expired(now)
            ),
            None,
        )

    def find_token(
        self, token_type: AccountTokenType, value: str
    ) -> AccountToken | None:
        """Token record holding exactly `value`, expired or not."""
        return next(
            (
                t
                for t in self.tokens
                if t.token_type == token_type and t.value == value
            ),
            None,
        )

    # -- external logins -------------------------------------------------

    def active_external_logins(self) -> list[ExternalLogin]:
        return [e for e in self.external_logins if not e.is_unbound]

    def get_external_login(self, provider: LoginProvider) -> ExternalLogin | None:
        return next(
            (
                e
                for e in self.external_logins
                if e.provider == provider and not e.is_unbound
            ),
            None,
        )

    def add_or_update_external_login(
        self, external_login: ExternalLogin, now: datetime | None = None
    ) -> ExternalLogin:
        if external_login is None:
            raise InvalidInput("external login is required")
        existing = next(
            (
                e
                for e in self.external_logins
                if e.provider == external_login.provider
                and e.provider_key == external_login.provider_key
            ),
            None,
        )
        if existing is None:
            self.external_logins.append(external_login)
            return external_login

        if existing.is_unbound:
            existing.rebind(now)
        else:
            existing.record_login(now)
        existing.update_profile(external_login.nickname, external_login.avatar_url)
        existing.update_tokens(external_login.access_token)
        return existing

    def remove_external_login(
        self, provider: LoginProvider, now: datetime | None = None
    ) -> None:
        target = self.get_external_login(provider)
        if target is None:
            raise InvalidOperation(
                f"external login {provider.value} not found or already unbound"
            )
        target.unbind(now)

