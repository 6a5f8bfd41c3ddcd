"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# ── Environment ───────────────────────────────────────────────────────────

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "info").upper()

# ── Paths ─────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# SQLite database file (credential store)
DB_PATH: str = os.getenv("DB_PATH", str(DATA_DIR / "billing_auth.db"))

# ── Redis (ephemeral state) ───────────────────────────────────────────────

REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
REDIS_SOCKET_TIMEOUT: float = float(os.getenv("REDIS_SOCKET_TIMEOUT", "5"))

# ── JWT ───────────────────────────────────────────────────────────────────

DEV_JWT_SECRET = "dev-secret-change-me-in-production"

JWT_SECRET: str = os.getenv("JWT_SECRET", DEV_JWT_SECRET)
JWT_ALGORITHM: str = "HS256"
JWT_EXPIRY_HOURS: int = int(os.getenv("JWT_EXPIRY_HOURS", "24"))

# ── Security policy ───────────────────────────────────────────────────────

MAX_LOGIN_ATTEMPTS: int = int(os.getenv("MAX_LOGIN_ATTEMPTS", "3"))
BLOCK_DURATION_SECONDS: int = int(os.getenv("BLOCK_DURATION_SECONDS", "600"))
OTP_EXPIRY_SECONDS: int = int(os.getenv("OTP_EXPIRY_SECONDS", "300"))
OTP_LENGTH: int = int(os.getenv("OTP_LENGTH", "6"))
BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

# ── SMTP ──────────────────────────────────────────────────────────────────

SMTP_HOST: str = os.getenv("SMTP_HOST", "")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM_EMAIL: str = os.getenv("SMTP_FROM_EMAIL", "noreply@billing.local")
SMTP_USE_TLS: bool = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

# Set to "false" to force console-only mode even when SMTP credentials are present.
_SMTP_ENABLED_OVERRIDE: str = os.getenv("SMTP_ENABLED", "auto")


def smtp_enabled() -> bool:
    """True when SMTP should actually send emails.

    Controlled by SMTP_ENABLED env var:
      • "auto" (default) — send if credentials are configured
      • "true"  — always send (will fail if credentials are missing)
      • "false" — never send, log to console instead
    """
    if _SMTP_ENABLED_OVERRIDE.lower() == "false":
        return False
    if _SMTP_ENABLED_OVERRIDE.lower() == "true":
        return True
    # "auto": send only when credentials are fully configured
    return bool(SMTP_HOST and SMTP_USERNAME and SMTP_PASSWORD)


def check_production_settings() -> None:
    """Refuse to start a production deployment with the development JWT secret."""
    if ENVIRONMENT == "production" and JWT_SECRET == DEV_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set when ENVIRONMENT=production")
