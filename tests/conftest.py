"""
Shared test fixtures.

Two layers are covered:
  • service-level fixtures wiring AuthService to in-memory stores, a
    controllable clock and a recording notifier
  • a FastAPI TestClient whose lifespan runs against a temporary SQLite
    database, the in-memory state store and the recording notifier

The `client` fixture runs the full lifespan (DB init / shutdown).
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from billing_auth.main import app
from billing_auth.services.auth_service import AuthService
from billing_auth.services.otp import OtpManager
from billing_auth.services.passwords import PasswordHasher
from billing_auth.services.session import SessionIssuer
from billing_auth.services.throttle import ThrottleGuard
from tests.mocks.models import MOCK_PASSWORD
from tests.mocks.stores import FakeClock, MemoryCredentialStore, MemoryStateStore, RecordingNotifier

TEST_SECRET = "test-secret-at-least-32-bytes-long!"


# ── Service-level fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def state_store(clock: FakeClock) -> MemoryStateStore:
    return MemoryStateStore(clock)


@pytest.fixture()
def user_store(clock: FakeClock) -> MemoryCredentialStore:
    return MemoryCredentialStore(clock)


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture()
def sessions(clock: FakeClock) -> SessionIssuer:
    return SessionIssuer(TEST_SECRET, expiry=timedelta(hours=24), clock=clock)


@pytest.fixture()
def make_service(clock, state_store, user_store, hasher, sessions):
    """Factory so tests can swap in a different notifier."""

    def _make(notifier) -> AuthService:
        return AuthService(
            users=user_store,
            throttle=ThrottleGuard(state_store, max_attempts=3, block_duration=600),
            otps=OtpManager(state_store, expiry=300, length=6),
            sessions=sessions,
            notifier=notifier,
            hasher=hasher,
            clock=clock,
        )

    return _make


@pytest.fixture()
def auth_service(make_service, notifier) -> AuthService:
    return make_service(notifier)


# ── HTTP fixtures ──────────────────────────────────────────────────────────


@pytest.fixture()
def _test_env(monkeypatch, tmp_path, state_store, notifier):
    """
    Internal fixture that patches the DB path, state store and notifier
    so that the app lifespan runs cleanly against a temp database and
    in-memory doubles.
    """
    import billing_auth.main as main_mod

    monkeypatch.setattr(main_mod, "DB_PATH", str(tmp_path / "test.db"))
    monkeypatch.setattr(main_mod, "build_state_store", lambda: state_store)
    monkeypatch.setattr(main_mod, "build_notifier", lambda: notifier)
    monkeypatch.setattr(main_mod, "BCRYPT_ROUNDS", 4)

    # ── Disable rate limiting in tests ────────────────────────────────
    from billing_auth.rate_limit import limiter as _limiter
    monkeypatch.setattr(_limiter, "enabled", False)


@pytest.fixture()
def client(_test_env) -> TestClient:
    """
    FastAPI TestClient against a temp DB and in-memory state store.

    Uses a context manager so the lifespan runs (DB init/shutdown).
    """
    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc
    app.dependency_overrides.clear()


@pytest.fixture()
def register_user(client: TestClient, notifier: RecordingNotifier):
    """Register through the API and return the OTP that was emailed."""

    def _register(email: str = "ada@example.com", password: str = MOCK_PASSWORD, **extra) -> str:
        body = {"name": "Ada", "email": email, "password": password, **extra}
        resp = client.post("/api/auth/register", json=body)
        assert resp.status_code == 201, resp.text
        return notifier.last.code

    return _register


@pytest.fixture()
def verified_token(client: TestClient, register_user) -> str:
    """Bearer token for a registered and verified ada@example.com."""
    code = register_user()
    resp = client.post("/api/auth/verify-otp", json={"email": "ada@example.com", "otp": code})
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]
