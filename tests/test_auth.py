# WORKFLOW: Authentication middleware tests.
# Test scenarios:
# 1. Protected endpoints refuse requests without a token
# 2. Expired and wrongly signed tokens are refused with 401
# 3. Valid bearer tokens and API-key headers pass
# 4. Health endpoints stay public
#
# Testing flow: app with AuthMiddleware + routers -> requests with/without tokens -> status checks

from datetime import datetime, timedelta

import jwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.dependencies import get_gate
from api.middleware.auth import AuthMiddleware
from api.routers import health, vocabulary
from core.config import settings
from db.session import get_db

API = settings.api_v1_prefix


def make_token(expires_in: timedelta, key: str = settings.secret_key) -> str:
    payload = {"sub": "officer", "exp": datetime.utcnow() + expires_in}
    return jwt.encode(payload, key, algorithm=settings.algorithm)


@pytest.fixture
def client(session_factory, gate):
    app = FastAPI()
    app.add_middleware(AuthMiddleware)
    app.include_router(health.router)
    app.include_router(health.router, prefix=API)
    app.include_router(vocabulary.router, prefix=API)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gate] = lambda: gate
    return TestClient(app)


def test_missing_token_is_refused(client):
    response = client.get(f"{API}/stop-words")
    assert response.status_code == 401
    assert response.json()["detail"] == {"code": "unauthorized", "message": "Authentication required"}
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_expired_token_is_refused(client):
    token = make_token(timedelta(minutes=-5))
    response = client.get(f"{API}/stop-words", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"]["message"] == "Token has expired"


def test_wrongly_signed_token_is_refused(client):
    token = make_token(timedelta(minutes=5), key="another-secret-key-that-is-long-enough-for-hs256")
    response = client.get(f"{API}/stop-words", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"]["message"] == "Invalid authentication token"


def test_valid_tokens_pass(client):
    token = make_token(timedelta(minutes=5))
    assert client.get(f"{API}/stop-words", headers={"Authorization": f"Bearer {token}"}).json() == []
    assert client.get(f"{API}/stop-words", headers={"X-API-Key": token}).status_code == 200


@pytest.mark.parametrize("path", ["/healthz", f"{API}/healthz", f"{API}/livez"])
def test_health_endpoints_are_public(client, path):
    assert client.get(path).status_code == 200
