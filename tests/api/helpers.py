from fastapi.testclient import TestClient


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def login(client: TestClient, email="login@example.com", password="s3cret", **extra):
    return client.post("/v1/auth/login", json={"email": email, "password": password, **extra})
