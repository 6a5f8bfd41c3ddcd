"""Tests for bearer-token and role dependencies."""

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from billing_auth.dependencies import CurrentSession, require_role
from billing_auth.errors import AuthServiceError
from billing_auth.main import auth_service_error_handler
from billing_auth.models import Role


@pytest.fixture()
def role_client(auth_service) -> TestClient:
    """Tiny app with one role-protected route, sharing the test AuthService."""
    test_app = FastAPI()
    test_app.state.auth_service = auth_service
    test_app.add_exception_handler(AuthServiceError, auth_service_error_handler)

    @test_app.get("/billing", dependencies=[Depends(require_role(Role.ADMIN, Role.FINANCE))])
    async def billing():
        return {"ok": True}

    @test_app.get("/whoami")
    async def whoami(session: CurrentSession):
        return {"user_id": session.user_id, "role": session.role.value}

    return TestClient(test_app)


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.parametrize("role, expected", [(Role.ADMIN, 200), (Role.FINANCE, 200), (Role.CUSTOMER, 403)])
def test_require_role(role_client, sessions, role, expected):
    token = sessions.mint(7, "a@x.com", role)
    resp = role_client.get("/billing", headers=_bearer(token))
    assert resp.status_code == expected
    if expected == 403:
        assert resp.json()["error"] == "forbidden"


def test_current_session(role_client, sessions):
    token = sessions.mint(7, "a@x.com", Role.CUSTOMER)
    resp = role_client.get("/whoami", headers=_bearer(token))
    assert resp.json() == {"user_id": 7, "role": "customer"}


def test_missing_header(role_client):
    resp = role_client.get("/whoami")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Authorization header required"


def test_expired_token(role_client, sessions, clock):
    token = sessions.mint(7, "a@x.com", Role.ADMIN)
    clock.advance(24 * 3600)
    resp = role_client.get("/billing", headers=_bearer(token))
    assert resp.status_code == 401
    assert resp.json()["error"] == "token_expired"
