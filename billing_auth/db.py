"""
SQLite credential store using aiosqlite.

Stores user records (email, password hash, role, status, verification
flag, timestamps). The table is created automatically on open().

Customer management owns the lifecycle of these records; the
authentication core only looks users up, creates them at registration and
updates them in place.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from billing_auth.errors import EmailAlreadyRegisteredError, InfrastructureError
from billing_auth.models import NewUser, Role, User, UserStatus

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    async def find_by_email(self, email: str) -> User | None: ...

    async def find_by_id(self, user_id: int) -> User | None: ...

    async def list_users(self) -> list[User]: ...

    async def create(self, user: NewUser) -> User:
        """Persist *user*. Raises EmailAlreadyRegisteredError on conflict."""
        ...

    async def save(self, user: User) -> None: ...


# ── Schema ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    name            TEXT NOT NULL,
    email           TEXT NOT NULL UNIQUE,
    password_hash   TEXT NOT NULL,
    role            TEXT NOT NULL DEFAULT 'customer',
    status          TEXT NOT NULL DEFAULT 'active',
    is_verified     INTEGER NOT NULL DEFAULT 0,
    last_login      TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);
"""


# ── Helpers ───────────────────────────────────────────────────────────────


def _iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.isoformat()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_user(row: aiosqlite.Row) -> User:
    """Convert a database row to a User model."""
    return User(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        password_hash=row["password_hash"],
        role=Role(row["role"]),
        status=UserStatus(row["status"]),
        is_verified=bool(row["is_verified"]),
        last_login=row["last_login"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SqliteCredentialStore:
    """CredentialStore backed by a single aiosqlite connection."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._db: aiosqlite.Connection | None = None

    async def open(self) -> None:
        """Open the database and create tables if they don't exist."""
        db_path = Path(self._path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(str(db_path))
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.executescript(_SCHEMA)
        await self._db.commit()
        logger.info("Credential store opened at %s", db_path)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("Credential store closed")

    def _conn(self) -> aiosqlite.Connection:
        assert self._db is not None, "Credential store not opened, call open() first"
        return self._db

    async def _fetch_one(self, sql: str, params: tuple) -> User | None:
        try:
            async with self._conn().execute(sql, params) as cur:
                row = await cur.fetchone()
        except aiosqlite.Error as exc:
            logger.error("Credential lookup failed: %s", exc)
            raise InfrastructureError("Credential store unavailable") from exc
        return _row_to_user(row) if row else None

    async def find_by_email(self, email: str) -> User | None:
        return await self._fetch_one("SELECT * FROM users WHERE email = ?", (email,))

    async def find_by_id(self, user_id: int) -> User | None:
        return await self._fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))

    async def list_users(self) -> list[User]:
        try:
            async with self._conn().execute("SELECT * FROM users ORDER BY id") as cur:
                rows = await cur.fetchall()
        except aiosqlite.Error as exc:
            logger.error("Credential listing failed: %s", exc)
            raise InfrastructureError("Credential store unavailable") from exc
        return [_row_to_user(row) for row in rows]

    async def create(self, user: NewUser) -> User:
        db = self._conn()
        now = _iso(_now())
        try:
            cur = await db.execute(
                """
                INSERT INTO users (
                    name, email, password_hash, role, status,
                    is_verified, last_login, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, NULL, ?, ?)
                """,
                (
                    user.name, user.email, user.password_hash,
                    user.role.value, user.status.value,
                    int(user.is_verified), now, now,
                ),
            )
            await db.commit()
        except aiosqlite.IntegrityError:
            await db.rollback()
            raise EmailAlreadyRegisteredError() from None
        except aiosqlite.Error as exc:
            logger.error("Failed to create user %s: %s", user.email, exc)
            raise InfrastructureError("Credential store unavailable") from exc

        created = await self.find_by_id(cur.lastrowid)
        assert created is not None
        logger.info("Created user %s (id=%d)", created.email, created.id)
        return created

    async def save(self, user: User) -> None:
        """Write every mutable field of *user* back in one statement."""
        db = self._conn()
        user.updated_at = _now()
        try:
            await db.execute(
                """
                UPDATE users SET
                    name = ?, password_hash = ?, role = ?, status = ?,
                    is_verified = ?, last_login = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    user.name, user.password_hash, user.role.value, user.status.value,
                    int(user.is_verified), _iso(user.last_login), _iso(user.updated_at),
                    user.id,
                ),
            )
            await db.commit()
        except aiosqlite.Error as exc:
            logger.error("Failed to save user %d: %s", user.id, exc)
            raise InfrastructureError("Credential store unavailable") from exc
