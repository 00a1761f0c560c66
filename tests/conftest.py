import os

import pytest

from authcore.infrastructure.security.tokens import JwtTokenIssuer
from tests.fakes import (
    FakeAccountRepo,
    FakeErroredOtpStore,
    FakeOtpStore,
    FakeUoW,
    TEST_JWT_SECRET,
    hash_password_stub as _hash_password_stub,
    verify_password_stub as _verify_password_stub,
)


@pytest.fixture()
def accounts():
    return FakeAccountRepo()


@pytest.fixture()
def uow(accounts):
    return FakeUoW(accounts)


@pytest.fixture()
def otp_store():
    return FakeOtpStore()


@pytest.fixture()
def errored_otp_store():
    return FakeErroredOtpStore()


@pytest.fixture()
def hash_password_stub():
    return _hash_password_stub


@pytest.fixture()
def verify_password_stub():
    return _verify_password_stub


@pytest.fixture()
def token_issuer():
    return JwtTokenIssuer(
        secret_key=TEST_JWT_SECRET,
        issuer="authcore-tests",
        audience="authcore-test-clients",
        access_token_minutes=60,
        refresh_token_minutes=1440,
    )


@pytest.fixture(autouse=True)
def patch_code(monkeypatch):
    """
    Make the 6-digit login code deterministic in all tests.
    You can override in a specific test by re-monkeypatching.
    """
    from authcore.domain import services as domain_services

    monkeypatch.setattr(domain_services, "generate_otp_code", lambda digits=6: "123456")
    yield


def pytest_collection_modifyitems(config, items):
    """Integration tests need live Postgres/Redis; opt in with RUN_INTEGRATION=1."""
    if os.environ.get("RUN_INTEGRATION") == "1":
        return
    skip = pytest.mark.skip(reason="set RUN_INTEGRATION=1 to run against Postgres/Redis")
    for item in items:
        if item.get_closest_marker("integration"):
            item.add_marker(skip)
