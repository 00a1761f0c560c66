from typing import Protocol


class OtpStorePort(Protocol):
    async def store_hashed_code(
        self, account_id: int, salt_b64: str, digest_b64: str, ttl_seconds: int
    ) -> None:
        """Replace the account's outstanding code; it expires after `ttl_seconds`."""

    async def verify_and_consume(self, account_id: int, code: str) -> bool:
        """
        True when `code` matches the outstanding one, which is then deleted so
        it works only once. Stores may also drop a code after repeated misses.
        """

    async def invalidate(self, account_id: int) -> None: ...
