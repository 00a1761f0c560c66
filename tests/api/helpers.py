from fastapi.testclient import TestClient


def register(client: TestClient, phone: str = "13800138000", password: str = "s3cret", **extra):
    return client.post(
        "/v1/auth/register",
        json={"phone_number": phone, "password": password, **extra},
    )


def login(client: TestClient, phone: str = "13800138000", password: str = "s3cret", **extra):
    return client.post(
        "/v1/auth/login",
        json={"phone_number": phone, "password": password, **extra},
    )


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
