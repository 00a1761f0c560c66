import asyncio
import copy
from typing import Any

from authcore.domain import services as domain_services
from authcore.domain.entities import AccountToken, AccountTokenType, UserAccount
from authcore.domain.errors import AccountAlreadyExists

TEST_JWT_SECRET = "test-secret-key-with-at-least-32-bytes!"


class FakeAccountRepo:
    """
    In-memory account store with transaction semantics: writes are staged and
    only become visible to later units of work after FakeUoW.commit().
    Every read hands out a deep copy, like a fresh row from the database.
    """

    def __init__(self):
        self._committed: dict[int, UserAccount] = {}
        self._staged: dict[int, UserAccount] = {}
        self._next_id = 1
        self._next_token_id = 1
        self.find_calls: list[tuple[str, Any, dict]] = []
        self.saves = 0
        self.save_result: int | None = None
        self.save_error: Exception | None = None
        self.add_error: Exception | None = None
        self.block: asyncio.Event | None = None
        self.entered_find = asyncio.Event()

    # -- test helpers ----------------------------------------------------

    def seed(self, account: UserAccount) -> UserAccount:
        """Store `account` as already committed; assigns ids in place."""
        if account.id is None:
            account.id = self._take_id()
        account.created_at = account.created_at or domain_services.utcnow()
        account.updated_at = account.updated_at or account.created_at
        account.tokens = self._merge_tokens([], account.tokens)
        self._committed[account.id] = copy.deepcopy(account)
        return account

    def get(self, account_id: int) -> UserAccount | None:
        account = self._committed.get(account_id)
        return copy.deepcopy(account) if account else None

    def get_by_phone(self, phone_number: str) -> UserAccount | None:
        for account in self._committed.values():
            if account.phone_number == phone_number:
                return copy.deepcopy(account)
        return None

    def commit_staged(self) -> None:
        self._committed.update(self._staged)
        self._staged.clear()

    def discard(self) -> None:
        self._staged.clear()

    # -- port ------------------------------------------------------------

    async def find_by_phone(
        self, phone_number: str, *, include_tokens: bool = False, for_update: bool = False
    ) -> UserAccount | None:
        self.find_calls.append(
            ("phone", phone_number, {"include_tokens": include_tokens, "for_update": for_update})
        )
        self.entered_find.set()
        if self.block is not None:
            await self.block.wait()
        for account in self._visible().values():
            if account.phone_number == phone_number.strip():
                return self._hand_out(account, include_tokens)
        return None

    async def find_by_id(
        self, account_id: int, *, include_tokens: bool = False
    ) -> UserAccount | None:
        self.find_calls.append(("id", account_id, {"include_tokens": include_tokens}))
        account = self._visible().get(account_id)
        return self._hand_out(account, include_tokens) if account else None

    async def find_by_token_value(
        self, token_type: AccountTokenType, value: str
    ) -> UserAccount | None:
        self.find_calls.append(("token", value, {"token_type": token_type}))
        for account in self._visible().values():
            if any(t.token_type == token_type and t.value == value for t in account.tokens):
                return self._hand_out(account, include_tokens=True)
        return None

    async def add(self, account: UserAccount) -> int:
        if self.add_error is not None:
            raise self.add_error
        if any(a.phone_number == account.phone_number for a in self._visible().values()):
            raise AccountAlreadyExists(account.phone_number)
        account.id = self._take_id()
        account.created_at = account.updated_at = domain_services.utcnow()
        account.tokens = self._merge_tokens([], account.tokens)
        self._staged[account.id] = copy.deepcopy(account)
        return 1 + len(account.tokens)

    async def save(self, account: UserAccount) -> int:
        self.saves += 1
        if self.save_error is not None:
            raise self.save_error
        if self.save_result is not None:
            return self.save_result
        current = self._visible().get(account.id)
        if current is None:
            return -1
        account.updated_at = domain_services.utcnow()
        stored = copy.deepcopy(account)
        stored.tokens = self._merge_tokens(current.tokens, account.tokens)
        self._staged[account.id] = stored
        return 1 + len(account.tokens)

    async def delete_expired_tokens(self, before) -> int:
        removed = 0
        for account_id, account in self._visible().items():
            keep = [t for t in account.tokens if t.expires_at is None or t.expires_at >= before]
            if len(keep) != len(account.tokens):
                removed += len(account.tokens) - len(keep)
                stored = copy.deepcopy(account)
                stored.tokens = copy.deepcopy(keep)
                self._staged[account_id] = stored
        return removed

    # -- internals -------------------------------------------------------

    def _visible(self) -> dict[int, UserAccount]:
        return {**self._committed, **self._staged}

    def _take_id(self) -> int:
        account_id = self._next_id
        self._next_id += 1
        return account_id

    def _hand_out(self, account: UserAccount, include_tokens: bool) -> UserAccount:
        out = copy.deepcopy(account)
        if not include_tokens:
            out.tokens = []
        return out

    def _merge_tokens(
        self, existing: list[AccountToken], incoming: list[AccountToken]
    ) -> list[AccountToken]:
        by_id = {t.id: copy.deepcopy(t) for t in existing}
        for token in incoming:
            if token.id is None:
                token.id = self._next_token_id
                self._next_token_id += 1
            by_id[token.id] = copy.deepcopy(token)
        return list(by_id.values())


class FakeOutboxRepo:
    def __init__(self):
        self.enqueues: list[tuple[str, dict, str | None]] = []
        self._pending: list[tuple[str, dict, str | None]] = []

    async def enqueue(
        self, *, topic: str, payload, idempotency_key: str | None = None
    ) -> int:
        self._pending.append((topic, payload, idempotency_key))
        return len(self.enqueues) + len(self._pending)

    def commit_staged(self) -> None:
        self.enqueues.extend(self._pending)
        self._pending.clear()

    def discard(self) -> None:
        self._pending.clear()


class FakeUoW:
    """Reusable across calls; flags describe the most recent transaction."""

    def __init__(self, accounts: FakeAccountRepo | None = None):
        self.accounts = accounts or FakeAccountRepo()
        self.outbox = FakeOutboxRepo()
        self.committed = False
        self.rolled_back = False
        self.commit_error: Exception | None = None

    async def __aenter__(self):
        self.committed = False
        self.rolled_back = False
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc or not self.committed:
            await self.rollback()

    async def commit(self) -> None:
        if self.commit_error is not None:
            raise self.commit_error
        self.accounts.commit_staged()
        self.outbox.commit_staged()
        self.committed = True

    async def rollback(self) -> None:
        self.accounts.discard()
        self.outbox.discard()
        self.rolled_back = True


class FakeOtpStore:
    """Keeps real salted digests, so only the issued code verifies."""

    def __init__(self):
        self.codes: dict[int, tuple[str, str, int]] = {}
        self.calls: list[tuple] = []

    async def store_hashed_code(
        self, account_id: int, salt_b64: str, digest_b64: str, ttl_seconds: int
    ) -> None:
        self.calls.append(("store", account_id, ttl_seconds))
        self.codes[account_id] = (salt_b64, digest_b64, ttl_seconds)

    async def verify_and_consume(self, account_id: int, code: str) -> bool:
        self.calls.append(("verify", account_id, code))
        stored = self.codes.get(account_id)
        if stored is None:
            return False
        salt_b64, digest_b64, _ = stored
        if not domain_services.verify_code_digest(code, salt_b64, digest_b64):
            return False
        del self.codes[account_id]
        return True

    async def invalidate(self, account_id: int) -> None:
        self.codes.pop(account_id, None)


class FakeErroredOtpStore(FakeOtpStore):
    async def store_hashed_code(
        self, account_id: int, salt_b64: str, digest_b64: str, ttl_seconds: int
    ) -> None:
        raise RuntimeError("Redis down")


class FakeSmsOK:
    def __init__(self):
        self.calls: list[dict[str, Any]] = []

    async def send(self, *, to: str, body: str, idempotency_key=None) -> None:
        self.calls.append({"to": to, "body": body, "idempotency_key": idempotency_key})


class FakeSmsFlaky:
    def __init__(self, fail_first: bool = True):
        self.calls: int = 0
        self.fail_first = fail_first

    async def send(self, *, to: str, body: str, idempotency_key=None) -> None:
        self.calls += 1
        if self.fail_first and self.calls == 1:
            raise RuntimeError("boom once")


def hash_password_stub(plain: str, **_: Any) -> tuple[str, None]:
    return "hashed-" + plain, None


def verify_password_stub(plain: str, hashed: str, salt: str | None = None) -> bool:
    return hashed == "hashed-" + plain
