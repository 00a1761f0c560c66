from __future__ import annotations

from redis.asyncio import Redis

from authcore.domain.ports.otp_store import OtpStorePort
from authcore.domain.services import code_digest_b64

# KEYS[1] otp hash, ARGV[1] candidate digest, ARGV[2] allowed misses.
# 1 = matched and deleted, 0 = no match (entry dropped once misses run out).
_CHECK_AND_CONSUME = """
local stored = redis.call('HGET', KEYS[1], 'digest')
if not stored then
  return 0
end
if stored == ARGV[1] then
  redis.call('DEL', KEYS[1])
  return 1
end
local misses = redis.call('HINCRBY', KEYS[1], 'misses', 1)
if misses >= tonumber(ARGV[2]) then
  redis.call('DEL', KEYS[1])
end
return 0
"""


class RedisLoginOtpStore(OtpStorePort):
    """
    At most one outstanding login code per account, stored as a Redis hash
    ``{salt, digest, misses}`` that expires by itself. The code itself is
    never stored. After ``max_misses`` wrong guesses the code is dropped and
    a new one has to be requested.
    """

    def __init__(self, redis: Redis, *, key_prefix: str = "otp:", max_misses: int = 5) -> None:
        self._redis = redis
        self._prefix = key_prefix
        self._max_misses = max_misses
        self._check_and_consume = redis.register_script(_CHECK_AND_CONSUME)

    def _key(self, account_id: int) -> str:
        return f"{self._prefix}{account_id}"

    async def store_hashed_code(
        self, account_id: int, salt_b64: str, digest_b64: str, ttl_seconds: int
    ) -> None:
        key = self._key(account_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.delete(key)
            pipe.hset(key, mapping={"salt": salt_b64, "digest": digest_b64, "misses": 0})
            pipe.expire(key, ttl_seconds)
            await pipe.execute()

    async def verify_and_consume(self, account_id: int, code: str) -> bool:
        if not code:
            return False
        key = self._key(account_id)
        salt_b64 = await self._redis.hget(key, "salt")
        if not salt_b64:
            return False
        matched = await self._check_and_consume(
            keys=[key], args=[code_digest_b64(code, salt_b64), self._max_misses]
        )
        return int(matched) == 1

    async def invalidate(self, account_id: int) -> None:
        await self._redis.delete(self._key(account_id))
