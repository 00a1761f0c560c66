from __future__ import annotations

from typing import Protocol


class SmsPort(Protocol):
    async def send(self, *, to: str, body: str, idempotency_key: str | None = None) -> None:
        """Deliver `body` to the phone number `to`; raises when the gateway refuses it."""
