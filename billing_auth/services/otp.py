"""
One-time codes delivered out of band (email).

Codes live in the ephemeral store under a per-purpose namespace:

    otp:<email>        login / registration verification
    pwd_reset:<email>  password reset

At most one live code exists per (identity, purpose); issuing a new one
overwrites the old value and restarts its TTL.

Verification does not consume the code. The caller invalidates it
explicitly once the check passes, so it can decide which side effects run
before the code is gone.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from enum import Enum
from typing import Callable

from billing_auth.models import OtpPurpose
from billing_auth.services.state_store import StateStore

logger = logging.getLogger(__name__)

_KEY_PREFIXES: dict[OtpPurpose, str] = {
    OtpPurpose.LOGIN_VERIFICATION: "otp",
    OtpPurpose.PASSWORD_RESET: "pwd_reset",
}

DIGITS = "0123456789"


class OtpCheck(Enum):
    VALID = "valid"
    EXPIRED = "expired"
    MISMATCH = "mismatch"


def otp_key(identity: str, purpose: OtpPurpose) -> str:
    return f"{_KEY_PREFIXES[purpose]}:{identity}"


def generate_code(length: int, randbelow: Callable[[int], int] = secrets.randbelow) -> str:
    """Numeric code of *length* digits, each drawn uniformly from 0-9."""
    if length < 1:
        raise ValueError("OTP length must be positive")
    return "".join(DIGITS[randbelow(len(DIGITS))] for _ in range(length))


class OtpManager:
    def __init__(
        self,
        store: StateStore,
        *,
        expiry: int = 300,
        length: int = 6,
        randbelow: Callable[[int], int] = secrets.randbelow,
    ) -> None:
        self._store = store
        self._expiry = expiry
        self._length = length
        self._randbelow = randbelow

    @property
    def expiry(self) -> int:
        return self._expiry

    async def issue(self, identity: str, purpose: OtpPurpose, length: int | None = None) -> str:
        """Generate and store a fresh code, replacing any live one."""
        code = generate_code(length if length is not None else self._length, self._randbelow)
        await self._store.set(otp_key(identity, purpose), code, self._expiry)
        logger.info("Issued %s OTP for %s (expires in %ds)", purpose.value, identity, self._expiry)
        return code

    async def verify(self, identity: str, purpose: OtpPurpose, supplied: str) -> OtpCheck:
        stored = await self._store.get(otp_key(identity, purpose))
        if stored is None:
            return OtpCheck.EXPIRED
        if not hmac.compare_digest(stored.encode(), supplied.encode()):
            return OtpCheck.MISMATCH
        return OtpCheck.VALID

    async def invalidate(self, identity: str, purpose: OtpPurpose) -> None:
        await self._store.delete(otp_key(identity, purpose))

    async def remaining_ttl(self, identity: str, purpose: OtpPurpose) -> int:
        """Seconds until the live code expires, 0 if there is none."""
        remaining = await self._store.ttl(otp_key(identity, purpose))
        return remaining if remaining is not None else 0
