"""
Failed-login throttling per identity.

Each failed password check increments ``login_attempts:<email>``. The
counter's window opens with its first increment and lasts
``block_duration`` seconds. Reaching ``max_attempts`` within the window
sets ``blocked:<email>`` for ``block_duration`` seconds; while that flag
exists every login for the identity is refused before the password is
looked at.

The increment is atomic in the store, but the follow-up EXPIRE and the
block SET are separate calls. A crash between them can leave a counter
without a TTL (re-applied on the next failure) or skip a block (set by
the next failure). This is best-effort, not exactly-once.
"""

from __future__ import annotations

import logging

from billing_auth.services.state_store import StateStore

logger = logging.getLogger(__name__)

ATTEMPTS_PREFIX = "login_attempts"
BLOCKED_PREFIX = "blocked"


def attempts_key(identity: str) -> str:
    return f"{ATTEMPTS_PREFIX}:{identity}"


def blocked_key(identity: str) -> str:
    return f"{BLOCKED_PREFIX}:{identity}"


class ThrottleGuard:
    """Tracks failed logins and blocks an identity after a threshold."""

    def __init__(
        self,
        store: StateStore,
        *,
        max_attempts: int = 3,
        block_duration: int = 600,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._store = store
        self._max_attempts = max_attempts
        self._block_duration = block_duration

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def block_duration(self) -> int:
        return self._block_duration

    async def check_blocked(self, identity: str) -> bool:
        """True iff a block flag exists for *identity*. Read-only."""
        return await self._store.exists(blocked_key(identity))

    async def record_failure(self, identity: str) -> None:
        key = attempts_key(identity)
        count = await self._store.incr(key)

        if count == 1:
            await self._store.expire(key, self._block_duration)
        elif await self._store.ttl(key) is None:
            # Counter survived without a TTL; reopen its window.
            await self._store.expire(key, self._block_duration)

        if count >= self._max_attempts:
            await self._store.set(blocked_key(identity), "blocked", self._block_duration)
            logger.warning(
                "Blocking %s for %ds after %d failed login attempts",
                identity, self._block_duration, count,
            )

    async def record_success(self, identity: str) -> None:
        """Clear both the counter and the block flag. Idempotent."""
        await self._store.delete(attempts_key(identity), blocked_key(identity))

    async def attempt_count(self, identity: str) -> int:
        raw = await self._store.get(attempts_key(identity))
        return int(raw) if raw is not None else 0

    async def attempts_remaining(self, identity: str) -> int:
        """For user-facing messages only; the block flag decides access."""
        return max(0, self._max_attempts - await self.attempt_count(identity))

    async def retry_after(self, identity: str) -> int:
        """Seconds until the block on *identity* lifts (0 when not blocked).

        One TTL read answers both questions. The flag is written with SET EX,
        so a live flag always carries an expiry.
        """
        remaining = await self._store.ttl(blocked_key(identity))
        return remaining if remaining is not None and remaining > 0 else 0
