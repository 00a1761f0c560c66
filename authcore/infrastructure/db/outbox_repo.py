from __future__ import annotations

from typing import Any

import psycopg
from psycopg.types.json import Json

from authcore.domain.errors import PersistenceError
from authcore.domain.ports.outbox_repository import OutboxRepositoryPort

# a replayed idempotency key hands back the row that already carries it
_ENQUEUE_SQL = """
INSERT INTO outbox (topic, payload, idempotency_key, status)
VALUES (%s, %s, %s, 'pending')
ON CONFLICT (idempotency_key) DO UPDATE
    SET updated_at = outbox.updated_at
RETURNING id
"""


class PgOutboxRepository(OutboxRepositoryPort):
    """
    Writes outbox rows on the unit of work's connection and never commits.
    Claiming and marking rows is the dispatcher's job.
    """

    def __init__(self, conn: psycopg.AsyncConnection) -> None:
        self._conn = conn

    async def enqueue(
        self, *, topic: str, payload: dict[str, Any], idempotency_key: str | None = None
    ) -> int:
        try:
            cur = await self._conn.execute(
                _ENQUEUE_SQL, (topic, Json(payload), idempotency_key)
            )
            row = await cur.fetchone()
        except psycopg.Error as e:
            raise PersistenceError(f"outbox enqueue failed: {e}") from e
        return int(row[0])
