import pytest
from fastapi.testclient import TestClient

from authcore.main import create_app
from authcore.presentation.dependencies import (
    get_hash_password,
    get_otp_store,
    get_otp_ttl_seconds,
    get_token_issuer,
    get_uow,
    get_verify_password,
)
from tests.fakes import (
    FakeOtpStore,
    FakeUoW,
    hash_password_stub,
    verify_password_stub,
)


@pytest.fixture()
def app_and_deps(token_issuer):
    app = create_app()
    uow = FakeUoW()
    otp_store = FakeOtpStore()

    app.dependency_overrides[get_uow] = lambda: uow
    app.dependency_overrides[get_otp_store] = lambda: otp_store
    app.dependency_overrides[get_hash_password] = lambda: hash_password_stub
    app.dependency_overrides[get_verify_password] = lambda: verify_password_stub
    app.dependency_overrides[get_token_issuer] = lambda: token_issuer
    app.dependency_overrides[get_otp_ttl_seconds] = lambda: 60

    try:
        yield app, uow, otp_store
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def client(app_and_deps):
    app, _, _ = app_and_deps
    return TestClient(app, raise_server_exceptions=False)
