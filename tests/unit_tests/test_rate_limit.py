"""Tests for per-IP rate limiting behaviour."""

import pytest
from fastapi.testclient import TestClient

from billing_auth.main import app


class TestRateLimiting:
    """Verify that rate limiting kicks in for sensitive endpoints."""

    @pytest.fixture()
    def limited_client(self, _test_env):
        """
        TestClient with rate limiting **enabled** (unlike the default
        `client` fixture which disables it for convenience).
        """
        from billing_auth.rate_limit import limiter

        limiter.enabled = True
        # Reset in-memory state so previous tests don't pollute counts
        limiter.reset()

        with TestClient(app, raise_server_exceptions=False) as tc:
            yield tc

        limiter.enabled = False

    def test_forgot_password_rate_limit(self, limited_client):
        """POST /api/auth/forgot-password is limited to 5 requests/minute."""
        for i in range(5):
            resp = limited_client.post(
                "/api/auth/forgot-password",
                json={"email": "test@example.com"},
            )
            assert resp.status_code == 200, f"Request {i + 1} should succeed"

        # 6th request should be rate-limited
        resp = limited_client.post(
            "/api/auth/forgot-password",
            json={"email": "test@example.com"},
        )
        assert resp.status_code == 429
        data = resp.json()
        assert data["error"] == "rate_limited"
        assert "Rate limit exceeded" in data["message"]

    def test_verify_otp_rate_limit(self, limited_client):
        """POST /api/auth/verify-otp is limited to 10 requests/minute."""
        for i in range(10):
            resp = limited_client.post(
                "/api/auth/verify-otp",
                json={"email": "test@example.com", "otp": "000000"},
            )
            # 401 (wrong OTP) is fine – we just need it not to be 429 yet
            assert resp.status_code == 401, f"Request {i + 1} should not be rate-limited"

        # 11th request should be rate-limited
        resp = limited_client.post(
            "/api/auth/verify-otp",
            json={"email": "test@example.com", "otp": "000000"},
        )
        assert resp.status_code == 429

    def test_health_not_limited_at_low_volume(self, limited_client):
        """GET /api/health at low volume should not be rate-limited."""
        for _ in range(10):
            resp = limited_client.get("/api/health")
            assert resp.status_code == 200

    def test_admin_listing_default_limit(self, limited_client, notifier):
        """GET /api/admin/users falls in the default tier of 60 requests/minute."""
        limited_client.post(
            "/api/auth/register",
            json={"name": "Root", "email": "root@example.com", "password": "correct-horse", "role": "admin"},
        )
        resp = limited_client.post(
            "/api/auth/verify-otp",
            json={"email": "root@example.com", "otp": notifier.last.code},
        )
        headers = {"Authorization": f"Bearer {resp.json()['token']}"}

        for i in range(60):
            resp = limited_client.get("/api/admin/users", headers=headers)
            assert resp.status_code == 200, f"Request {i + 1} should succeed"

        resp = limited_client.get("/api/admin/users", headers=headers)
        assert resp.status_code == 429
