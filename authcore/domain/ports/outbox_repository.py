from __future__ import annotations

from typing import Any, Protocol


class OutboxRepositoryPort(Protocol):
    async def enqueue(
        self, *, topic: str, payload: dict[str, Any], idempotency_key: str | None = None
    ) -> int:
        """
        Add a pending message and return its id. Re-enqueueing an existing
        idempotency key returns the first message's id. The dispatcher only
        sees the message after the surrounding transaction commits.
        """
