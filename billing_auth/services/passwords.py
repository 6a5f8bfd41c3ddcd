"""
Password hashing with bcrypt.

bcrypt is deliberately slow, so every call is pushed to a worker thread
instead of running on the event loop.
"""

from __future__ import annotations

import asyncio

import bcrypt

from billing_auth.errors import ValidationError

_BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds
        # Used by burn() so unknown identities cost as much as wrong passwords.
        self._dummy_hash = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt(rounds=rounds))

    def _hash_sync(self, password: str) -> str:
        encoded = password.encode("utf-8")
        if len(encoded) > _BCRYPT_MAX_BYTES:
            raise ValidationError(f"Password must be at most {_BCRYPT_MAX_BYTES} bytes")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    @staticmethod
    def _verify_sync(password: str, password_hash: str | bytes) -> bool:
        hashed = password_hash.encode("utf-8") if isinstance(password_hash, str) else password_hash
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed)
        except ValueError:
            # Malformed stored hash or over-long password
            return False

    async def hash(self, password: str) -> str:
        return await asyncio.to_thread(self._hash_sync, password)

    async def verify(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(self._verify_sync, password, password_hash)

    async def burn(self, password: str) -> None:
        await asyncio.to_thread(self._verify_sync, password, self._dummy_hash)
