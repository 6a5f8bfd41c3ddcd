"""Tests for the /api/admin endpoints."""

ADMIN_EMAIL = "root@example.com"


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _admin_token(client, register_user) -> str:
    code = register_user(ADMIN_EMAIL, role="admin")
    resp = client.post("/api/auth/verify-otp", json={"email": ADMIN_EMAIL, "otp": code})
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]


class TestListUsers:
    def test_admin_sees_every_user(self, client, register_user, verified_token):
        token = _admin_token(client, register_user)

        resp = client.get("/api/admin/users", headers=_bearer(token))
        assert resp.status_code == 200
        users = resp.json()
        assert [u["email"] for u in users] == ["ada@example.com", ADMIN_EMAIL]
        assert [u["role"] for u in users] == ["customer", "admin"]
        assert all("password_hash" not in u for u in users)

    def test_customer_forbidden(self, client, verified_token):
        resp = client.get("/api/admin/users", headers=_bearer(verified_token))
        assert resp.status_code == 403
        assert resp.json()["error"] == "forbidden"

    def test_requires_token(self, client):
        resp = client.get("/api/admin/users")
        assert resp.status_code == 401

