"""
End-to-end walk through the account lifecycle with the real bcrypt hasher and
JWT issuer; only storage is in memory.
"""

from datetime import timedelta
from functools import partial

import pytest

from authcore.application.contracts import ErrorCode, LoginRequest, RegistrationRequest
from authcore.application.login import login
from authcore.application.refresh_token import refresh_token
from authcore.application.register_account import register_account
from authcore.application.request_login_otp import request_login_otp
from authcore.infrastructure.security.password import hash_password, verify_password

PHONE = "13800138000"
PASSWORD = "P@ssw0rd!"


@pytest.mark.asyncio
async def test_register_fail_five_times_pass_otp_then_get_locked(
    uow, accounts, token_issuer, otp_store
):
    async def attempt(password: str, otp_code: str | None = None):
        return await login(
            uow,
            LoginRequest(phone_number=PHONE, password=password, otp_code=otp_code),
            verify_password,
            token_issuer,
            otp_store,
        )

    registered = await register_account(
        uow,
        RegistrationRequest(phone_number=PHONE, password=PASSWORD),
        partial(hash_password, rounds=4),
    )
    assert registered.success is True
    account_id = registered.data.id
    assert accounts.get(account_id).password_hash != PASSWORD

    for _ in range(5):
        assert (await attempt("wrong-password")).code == ErrorCode.INVALID_CREDENTIALS
    stored = accounts.get(account_id)
    assert stored.access_failed_count == 5
    assert stored.force_otp_on_login is True

    challenged = await attempt(PASSWORD)
    assert challenged.success is True
    assert challenged.data.needs_otp is True
    assert accounts.get(account_id).access_failed_count == 5

    assert (await request_login_otp(uow, otp_store, PHONE)).success is True
    assert (await attempt(PASSWORD, otp_code="999999")).code == ErrorCode.INVALID_OTP

    passed = await attempt(PASSWORD, otp_code="123456")
    assert passed.data.success is True
    assert passed.data.account.id == account_id
    stored = accounts.get(account_id)
    assert stored.access_failed_count == 0
    assert stored.force_otp_on_login is False

    # the code was single use
    assert account_id not in otp_store.codes

    refreshed = await refresh_token(uow, passed.data.refresh_token, token_issuer)
    assert refreshed.success is True
    assert (
        await refresh_token(uow, passed.data.refresh_token, token_issuer)
    ).code == ErrorCode.INVALID_TOKEN

    locked = accounts.get(account_id)
    locked.lock(timedelta(hours=1))
    accounts.seed(locked)

    assert (
        await refresh_token(uow, refreshed.data.refresh_token, token_issuer)
    ).code == ErrorCode.ACCOUNT_LOCKED
    assert (await attempt(PASSWORD)).code == ErrorCode.ACCOUNT_LOCKED
