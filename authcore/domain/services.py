# authcore/domain/services.py
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import os
import secrets
from datetime import datetime, timezone

_MOBILE_PREFIXES = ("13", "14", "15", "16", "17", "18", "19")
# bcrypt only reads the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_otp_code(digits: int = 6) -> str:
    """Zero-padded numeric one-time code."""
    return f"{secrets.randbelow(10**digits):0{digits}d}"


def secure_compare(a: str, b: str) -> bool:
    """
    Constant-time comparison for secrets.
    Accepts strings; falls back to bytes if needed.
    """
    try:
        return hmac.compare_digest(a, b)
    except TypeError:
        return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def _sha256_salt_plus_code(salt: bytes, code: str) -> bytes:
    h = hashlib.sha256()
    h.update(salt)
    h.update(code.encode("utf-8"))
    return h.digest()


def make_code_digest(code: str) -> tuple[str, str]:
    """
    Return (salt_b64, digest_b64) where digest = SHA256(salt || code).
    """
    salt = os.urandom(16)
    digest = _sha256_salt_plus_code(salt, code)
    return (
        base64.b64encode(salt).decode("utf-8"),
        base64.b64encode(digest).decode("utf-8"),
    )


def code_digest_b64(code: str, salt_b64: str) -> str:
    """Digest of `code` under an existing base64 salt, as produced by make_code_digest()."""
    salt = base64.b64decode(salt_b64.encode("utf-8"), validate=True)
    return base64.b64encode(_sha256_salt_plus_code(salt, code)).decode("utf-8")


def verify_code_digest(code: str, salt_b64: str, digest_b64: str) -> bool:
    """
    Verify code against (salt_b64, digest_b64) from make_code_digest().
    """
    try:
        salt = base64.b64decode(salt_b64.encode("utf-8"), validate=True)
        expected = base64.b64decode(digest_b64.encode("utf-8"), validate=True)
    except (binascii.Error, ValueError):
        return False

    calc = _sha256_salt_plus_code(salt, code)
    return hmac.compare_digest(calc, expected)


def password_fits_hash(password: str) -> bool:
    return len(password.encode("utf-8")) <= MAX_PASSWORD_BYTES


def is_valid_phone_number(phone_number: str | None) -> bool:
    """Mainland mobile format: 11 digits starting with 13..19."""
    if not phone_number or not phone_number.strip():
        return False
    if len(phone_number) != 11 or not (phone_number.isascii() and phone_number.isdigit()):
        return False
    return phone_number.startswith(_MOBILE_PREFIXES)


def mask_secret(secret: str | None, visible_chars: int = 3) -> str:
    """Keep `visible_chars` at both ends and star the middle (for logs)."""
    if not secret or visible_chars < 0:
        return ""
    if len(secret) <= visible_chars * 2:
        return "*" * len(secret)
    hidden = "*" * (len(secret) - visible_chars * 2)
    return f"{secret[:visible_chars]}{hidden}{secret[len(secret) - visible_chars :]}"
