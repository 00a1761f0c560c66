from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Protocol

from authcore.domain.entities import UserAccount


@dataclass(frozen=True)
class IssuedTokens:
    access_token: str
    access_expires_at: datetime
    refresh_token: str
    refresh_expires_at: datetime


class TokenIssuerPort(Protocol):
    def issue_token_pair(
        self,
        account: UserAccount,
        extra_claims: Mapping[str, Any] | None = None,
        *,
        now: datetime | None = None,
    ) -> IssuedTokens:
        """Signed access token + opaque refresh token, both time-boxed."""

    def parse_claims(self, access_token: str) -> dict[str, Any]:
        """Claims carried by an access token; {} when malformed or expired."""
