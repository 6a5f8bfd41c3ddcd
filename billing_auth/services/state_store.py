"""
Ephemeral state store – short-lived keys with TTLs.

Holds login-attempt counters, block flags and OTP values. Expiry is left
entirely to the store; nothing in this package sweeps or polls for
expired keys.

The production implementation is Redis. Tests use the in-memory double
in ``tests.mocks.stores``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Protocol

import redis
import redis.asyncio as aioredis

from billing_auth.errors import InfrastructureError

logger = logging.getLogger(__name__)


class StateStore(Protocol):
    """Key-value store with per-key expiry and atomic increment."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl: int) -> None: ...

    async def incr(self, key: str) -> int: ...

    async def expire(self, key: str, ttl: int) -> None: ...

    async def delete(self, *keys: str) -> None: ...

    async def ttl(self, key: str) -> int | None:
        """Seconds left on *key*, or None if it is absent or has no expiry."""
        ...

    async def exists(self, key: str) -> bool: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


@asynccontextmanager
async def _translate_errors(op: str, key: str) -> AsyncIterator[None]:
    try:
        yield
    except redis.RedisError as exc:
        logger.error("Redis %s failed for %s: %s", op, key, exc)
        raise InfrastructureError("Ephemeral state store unavailable") from exc


class RedisStateStore:
    """StateStore backed by ``redis.asyncio``."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, *, socket_timeout: float = 5.0) -> "RedisStateStore":
        client = aioredis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
        )
        return cls(client)

    async def get(self, key: str) -> str | None:
        async with _translate_errors("GET", key):
            return await self._client.get(key)

    async def set(self, key: str, value: str, ttl: int) -> None:
        async with _translate_errors("SET", key):
            await self._client.set(key, value, ex=ttl)

    async def incr(self, key: str) -> int:
        async with _translate_errors("INCR", key):
            return int(await self._client.incr(key))

    async def expire(self, key: str, ttl: int) -> None:
        async with _translate_errors("EXPIRE", key):
            await self._client.expire(key, ttl)

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        async with _translate_errors("DEL", ",".join(keys)):
            await self._client.delete(*keys)

    async def ttl(self, key: str) -> int | None:
        async with _translate_errors("TTL", key):
            remaining = await self._client.ttl(key)
        # -2: no such key, -1: key without expiry
        if remaining is None or remaining < 0:
            return None
        return int(remaining)

    async def exists(self, key: str) -> bool:
        async with _translate_errors("EXISTS", key):
            return bool(await self._client.exists(key))

    async def ping(self) -> bool:
        async with _translate_errors("PING", "-"):
            return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Redis connection closed")
