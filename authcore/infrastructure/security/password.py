from __future__ import annotations

from passlib.context import CryptContext

from authcore.domain.errors import InvalidInput
from authcore.domain.services import MAX_PASSWORD_BYTES, password_fits_hash
from authcore.settings import get_settings

# One global context; bcrypt is the only scheme we use.
_pwd = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(plain: str, *, rounds: int | None = None) -> tuple[str, str | None]:
    """
    Hash a password using bcrypt. If rounds is None, use settings.bcrypt_rounds.

    Returns (hash, salt). bcrypt embeds its own random salt in the hash, so the
    separate salt is always None and two calls never return the same hash.
    Passwords longer than 72 UTF-8 bytes are refused rather than truncated.
    """
    if not plain:
        raise InvalidInput("password cannot be empty")
    if not password_fits_hash(plain):
        raise InvalidInput(f"password cannot exceed {MAX_PASSWORD_BYTES} bytes")
    if rounds is None:
        rounds = int(get_settings().bcrypt_rounds)
    return _pwd.hash(plain, rounds=rounds), None


def verify_password(plain: str, password_hash: str, salt: str | None = None) -> bool:
    """
    Verify a password against its bcrypt hash (safe timing).
    `salt` is accepted for stored records that carry one; bcrypt ignores it.
    An over-long password never verifies, since no hash could have been made from it.
    """
    if not plain:
        raise InvalidInput("password cannot be empty")
    if not password_hash:
        raise InvalidInput("password hash cannot be empty")
    if not password_fits_hash(plain):
        return False
    return _pwd.verify(plain, password_hash)
