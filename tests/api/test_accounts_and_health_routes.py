from datetime import datetime, timedelta, timezone

from authcore.domain.entities import UserAccount
from authcore.infrastructure.security.tokens import JwtTokenIssuer
from tests.api.helpers import bearer, login, register


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_me_with_valid_access_token(client):
    register(client, first_name="John")
    token = login(client).json()["access_token"]

    response = client.get("/v1/accounts/me", headers=bearer(token))

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == 1
    assert body["phone_number"] == "13800138000"
    assert body["first_name"] == "John"


def test_me_with_garbage_token(client):
    response = client.get("/v1/accounts/me", headers=bearer("not-a-jwt"))
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "1006"


def test_me_with_expired_token(client, token_issuer):
    register(client)
    account = UserAccount(id=1, phone_number="13800138000", password_hash="h")
    expired = token_issuer.issue_token_pair(
        account, now=datetime.now(timezone.utc) - timedelta(hours=2)
    )

    response = client.get("/v1/accounts/me", headers=bearer(expired.access_token))

    assert response.status_code == 401


def test_me_with_token_signed_by_someone_else(client):
    register(client)
    forged = JwtTokenIssuer(
        secret_key="forged-secret-key-with-32-bytes-or-more!",
        issuer="authcore-tests",
        audience="authcore-test-clients",
    ).issue_token_pair(UserAccount(id=1, phone_number="13800138000", password_hash="h"))

    response = client.get("/v1/accounts/me", headers=bearer(forged.access_token))

    assert response.status_code == 401


def test_me_for_deleted_account(client, token_issuer):
    ghost = UserAccount(id=99, phone_number="13900139000", password_hash="h")
    token = token_issuer.issue_token_pair(ghost).access_token

    response = client.get("/v1/accounts/me", headers=bearer(token))

    assert response.status_code == 401
    assert response.json()["detail"]["message"] == "Unknown account."
