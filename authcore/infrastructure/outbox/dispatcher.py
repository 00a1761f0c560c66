from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from authcore.application.request_login_otp import LOGIN_OTP_TOPIC
from authcore.domain.ports.sms_port import SmsPort

logger = logging.getLogger(__name__)

_LAST_ERROR_MAX = 1000

_CLAIM_SQL = """
WITH due AS (
    SELECT id
    FROM outbox
    WHERE (status = 'pending' AND COALESCE(next_attempt_at, NOW()) <= NOW())
       OR (status = 'processing'
           AND updated_at < NOW() - make_interval(secs => %(lease)s))
    ORDER BY created_at
    LIMIT %(limit)s
    FOR UPDATE SKIP LOCKED
)
UPDATE outbox AS o
SET status = 'processing', updated_at = NOW()
FROM due
WHERE o.id = due.id
RETURNING o.id, o.topic, o.payload, o.attempts;
"""

_DISPATCHED_SQL = """
UPDATE outbox
SET status = 'dispatched',
    payload = '{}'::jsonb,
    last_error = NULL,
    updated_at = NOW()
WHERE id = %(id)s;
"""

_RESCHEDULE_SQL = """
UPDATE outbox
SET status = 'pending',
    attempts = %(attempts)s,
    last_error = %(error)s,
    next_attempt_at = NOW() + make_interval(secs => %(delay)s),
    updated_at = NOW()
WHERE id = %(id)s;
"""


class UnknownTopic(RuntimeError):
    pass


@dataclass(frozen=True)
class RetryPolicy:
    base: int = 2  # seconds
    max_delay: int = 60  # seconds

    def compute_delay(self, attempts: int) -> int:
        return min(self.max_delay, self.base * (2**attempts))


@dataclass(frozen=True)
class OutboxMessage:
    id: int
    topic: str
    attempts: int
    payload: dict[str, Any] = field(default_factory=dict)


Handler = Callable[[OutboxMessage], Awaitable[None]]


class OutboxDispatcher:
    """
    Claims due outbox rows in batches and hands each one to the handler
    registered for its topic. A row is marked dispatched once its handler
    returns, and its payload is cleared so sent codes do not linger; any
    error puts it back to pending with an exponential delay and the error
    text kept in ``last_error``. Rows left in processing for longer than
    ``processing_lease_seconds`` (a round that died before marking them) are
    claimed again. Database errors end the round, not the loop.
    """

    def __init__(
        self,
        *,
        pool: AsyncConnectionPool,
        sms: SmsPort,
        batch_size: int = 10,
        poll_interval: float = 1.0,
        retry_policy: RetryPolicy | None = None,
        processing_lease_seconds: int = 300,
    ) -> None:
        self.pool = pool
        self.sms = sms
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.retry_policy = retry_policy or RetryPolicy()
        self.processing_lease_seconds = processing_lease_seconds
        self._handlers: dict[str, Handler] = {LOGIN_OTP_TOPIC: self._send_login_otp}

    async def run_forever(self) -> None:
        logger.info(
            "outbox dispatcher started",
            extra={"batch_size": self.batch_size, "poll_interval": self.poll_interval},
        )
        while True:
            try:
                processed = await self._process_once()
            except (psycopg.Error, PoolTimeout):
                logger.exception("outbox round failed; retrying after poll interval")
                processed = 0
            if not processed:
                await asyncio.sleep(self.poll_interval)

    async def _process_once(self) -> int:
        """Run one claim/dispatch round; returns how many rows were claimed."""
        messages = await self._claim(self.batch_size)
        if messages:
            logger.info("claimed outbox messages", extra={"count": len(messages)})
        for message in messages:
            await self._handle(message)
        return len(messages)

    async def _handle(self, message: OutboxMessage) -> None:
        try:
            handler = self._handlers.get(message.topic)
            if handler is None:
                raise UnknownTopic(f"unknown topic: {message.topic}")
            await handler(message)
        except Exception as e:  # noqa: BLE001
            attempts = message.attempts + 1
            delay = self.retry_policy.compute_delay(message.attempts)
            logger.warning(
                "outbox message failed; rescheduled",
                extra={
                    "id": message.id,
                    "topic": message.topic,
                    "attempts": attempts,
                    "retry_in_s": delay,
                    "error": str(e),
                },
            )
            await self._execute(
                _RESCHEDULE_SQL,
                {
                    "id": message.id,
                    "attempts": attempts,
                    "delay": delay,
                    "error": str(e)[:_LAST_ERROR_MAX],
                },
            )
        else:
            await self._execute(_DISPATCHED_SQL, {"id": message.id})

    async def _send_login_otp(self, message: OutboxMessage) -> None:
        await self.sms.send(
            to=message.payload["to"],
            body=message.payload["body"],
            idempotency_key=str(message.id),
        )

    async def _claim(self, limit: int) -> list[OutboxMessage]:
        async with self.pool.connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    _CLAIM_SQL, {"limit": limit, "lease": self.processing_lease_seconds}
                )
                rows = await cur.fetchall()
        messages = [
            OutboxMessage(
                id=row["id"],
                topic=row["topic"],
                attempts=row["attempts"],
                payload=row["payload"] or {},
            )
            for row in rows
        ]
        return sorted(messages, key=lambda m: m.id)

    async def _execute(self, sql: str, params: dict[str, Any]) -> None:
        # pool.connection() commits on a clean exit
        async with self.pool.connection() as conn:
            await conn.execute(sql, params)
