from __future__ import annotations

import base64
import logging
import os
import uuid
from datetime import datetime, timedelta
from typing import Any, Mapping

import jwt

from authcore.domain.entities import UserAccount
from authcore.domain.errors import InvalidInput, InvalidToken
from authcore.domain.ports.token_issuer import IssuedTokens, TokenIssuerPort
from authcore.domain.services import utcnow
from authcore.settings import Settings

logger = logging.getLogger(__name__)

CLAIM_USER_ID = "userid"
CLAIM_PHONE_NUMBER = "phonenumber"

_REFRESH_TOKEN_BYTES = 32


def generate_refresh_token() -> str:
    """Opaque lookup key: 32 random bytes, base64 encoded."""
    return base64.b64encode(os.urandom(_REFRESH_TOKEN_BYTES)).decode("ascii")


class JwtTokenIssuer(TokenIssuerPort):
    """HS256 access tokens via PyJWT plus random refresh tokens."""

    def __init__(
        self,
        *,
        secret_key: str,
        issuer: str,
        audience: str,
        access_token_minutes: int = 60,
        refresh_token_minutes: int = 1440,
        algorithm: str = "HS256",
    ) -> None:
        if not secret_key:
            raise InvalidInput("jwt secret key cannot be empty")
        self._secret_key = secret_key
        self._issuer = issuer
        self._audience = audience
        self._access_ttl = timedelta(minutes=access_token_minutes)
        self._refresh_ttl = timedelta(minutes=refresh_token_minutes)
        self._algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Settings) -> "JwtTokenIssuer":
        return cls(
            secret_key=settings.jwt_secret_key,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            access_token_minutes=settings.access_token_expire_minutes,
            refresh_token_minutes=settings.refresh_token_expire_minutes,
            algorithm=settings.jwt_algorithm,
        )

    def issue_token_pair(
        self,
        account: UserAccount,
        extra_claims: Mapping[str, Any] | None = None,
        *,
        now: datetime | None = None,
    ) -> IssuedTokens:
        if account is None:
            raise InvalidInput("account is required")
        if account.id is None:
            raise InvalidInput("account must be persisted before tokens are issued")

        now = now or utcnow()
        access_expires_at = now + self._access_ttl
        claims: dict[str, Any] = dict(extra_claims or {})
        claims.update(
            {
                "sub": str(account.id),
                CLAIM_USER_ID: str(account.id),
                CLAIM_PHONE_NUMBER: account.phone_number,
                "iss": self._issuer,
                "aud": self._audience,
                "iat": now,
                "exp": access_expires_at,
                "jti": uuid.uuid4().hex,
            }
        )
        access_token = jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

        return IssuedTokens(
            access_token=access_token,
            access_expires_at=access_expires_at,
            refresh_token=generate_refresh_token(),
            refresh_expires_at=now + self._refresh_ttl,
        )

    def parse_claims(self, access_token: str) -> dict[str, Any]:
        """Unverified read of the claims; {} for malformed or expired tokens."""
        if not access_token:
            return {}
        try:
            return jwt.decode(
                access_token,
                options={
                    "verify_signature": False,
                    "verify_exp": True,
                    "verify_aud": False,
                    "verify_iss": False,
                },
            )
        except jwt.PyJWTError:
            return {}

    def decode_access_token(self, access_token: str) -> dict[str, Any]:
        """Fully verified claims (signature, expiry, issuer, audience)."""
        try:
            return jwt.decode(
                access_token,
                self._secret_key,
                algorithms=[self._algorithm],
                audience=self._audience,
                issuer=self._issuer,
                options={"require": ["exp", "sub"]},
            )
        except jwt.PyJWTError as e:
            logger.info("access token rejected", extra={"reason": str(e)})
            raise InvalidToken(str(e)) from e
