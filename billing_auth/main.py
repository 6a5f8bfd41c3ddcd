"""Main FastAPI application for the billing authentication service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from billing_auth import __version__
from billing_auth.config import (
    BCRYPT_ROUNDS,
    BLOCK_DURATION_SECONDS,
    DB_PATH,
    JWT_ALGORITHM,
    JWT_EXPIRY_HOURS,
    JWT_SECRET,
    LOG_LEVEL,
    MAX_LOGIN_ATTEMPTS,
    OTP_EXPIRY_SECONDS,
    OTP_LENGTH,
    REDIS_SOCKET_TIMEOUT,
    REDIS_URL,
    check_production_settings,
)
from billing_auth.db import CredentialStore, SqliteCredentialStore
from billing_auth.errors import AuthServiceError, InfrastructureError, ThrottledError
from billing_auth.models import Error
from billing_auth.rate_limit import limiter
from billing_auth.routers import admin, auth, health
from billing_auth.services.auth_service import AuthService
from billing_auth.services.email import EmailNotifier, Notifier
from billing_auth.services.otp import OtpManager
from billing_auth.services.passwords import PasswordHasher
from billing_auth.services.session import SessionIssuer, utcnow
from billing_auth.services.state_store import RedisStateStore, StateStore
from billing_auth.services.throttle import ThrottleGuard

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── Wiring ─────────────────────────────────────────────────────────────────


def build_state_store() -> StateStore:
    return RedisStateStore.from_url(REDIS_URL, socket_timeout=REDIS_SOCKET_TIMEOUT)


def build_notifier() -> Notifier:
    return EmailNotifier()


def build_auth_service(
    users: CredentialStore,
    state: StateStore,
    notifier: Notifier,
    *,
    clock: Callable = utcnow,
) -> AuthService:
    """Assemble the AuthService from its stores and the configured policy."""
    return AuthService(
        users=users,
        throttle=ThrottleGuard(
            state,
            max_attempts=MAX_LOGIN_ATTEMPTS,
            block_duration=BLOCK_DURATION_SECONDS,
        ),
        otps=OtpManager(state, expiry=OTP_EXPIRY_SECONDS, length=OTP_LENGTH),
        sessions=SessionIssuer(
            JWT_SECRET,
            algorithm=JWT_ALGORITHM,
            expiry=timedelta(hours=JWT_EXPIRY_HOURS),
            clock=clock,
        ),
        notifier=notifier,
        hasher=PasswordHasher(rounds=BCRYPT_ROUNDS),
        clock=clock,
    )


# ── Lifespan ───────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the credential store and state store on startup, close on shutdown."""
    check_production_settings()

    users = SqliteCredentialStore(DB_PATH)
    await users.open()
    state = build_state_store()
    try:
        await state.ping()
    except InfrastructureError:
        logger.warning("State store unreachable at startup; auth requests will fail until it answers")

    app.state.auth_service = build_auth_service(users, state, build_notifier())
    logger.info("Billing auth service started")
    try:
        yield
    finally:
        await state.close()
        await users.close()
        logger.info("Billing auth service stopped")


app = FastAPI(
    title="Billing Auth API",
    description="Registration, login, OTP verification and password flows for the billing API",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.limiter = limiter


# ── Error handlers ─────────────────────────────────────────────────────────


def _error_response(status_code: int, body: Error, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


@app.exception_handler(AuthServiceError)
async def auth_service_error_handler(request: Request, exc: AuthServiceError) -> JSONResponse:
    headers = None
    message = exc.message
    if isinstance(exc, ThrottledError):
        headers = {"Retry-After": str(exc.retry_after)}
    elif isinstance(exc, InfrastructureError):
        # Backend details stay in the logs.
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        message = "Service temporarily unavailable, please try again later"
    return _error_response(
        exc.status_code,
        Error(error=exc.kind, message=message, details=exc.details or None),
        headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        422,
        Error(
            error="validation_error",
            message="Invalid request",
            details={"errors": jsonable_encoder(exc.errors())},
        ),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.info("Rate limit exceeded for %s on %s", request.client.host if request.client else "?", request.url.path)
    return _error_response(
        429,
        Error(error="rate_limited", message=f"Rate limit exceeded: {exc.detail}"),
    )


# ── Routers ────────────────────────────────────────────────────────────────

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(admin.router)
