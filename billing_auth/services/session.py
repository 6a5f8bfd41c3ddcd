"""
Stateless session tokens (HS256 JWTs).

A token is valid iff its signature checks out under the shared secret with
the pinned algorithm and its expiry is still ahead of the clock. There is
no server-side session table, so tokens cannot be revoked before they
expire.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt
import pydantic

from billing_auth.errors import TokenExpiredError, TokenInvalidError
from billing_auth.models import Role, SessionClaims

logger = logging.getLogger(__name__)

_HMAC_ALGORITHMS = frozenset({"HS256", "HS384", "HS512"})
_REQUIRED_CLAIMS = ["user_id", "email", "role", "iat", "exp"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionIssuer:
    """Mints and verifies signed session tokens."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        expiry: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if algorithm not in _HMAC_ALGORITHMS:
            raise ValueError(f"Unsupported signing algorithm: {algorithm!r}")
        if not secret:
            raise ValueError("A signing secret is required")
        self._secret = secret
        self._algorithm = algorithm
        self._expiry = expiry
        self._clock = clock

    @property
    def expiry(self) -> timedelta:
        return self._expiry

    def mint(
        self,
        user_id: int,
        email: str,
        role: Role,
        expiry: timedelta | None = None,
    ) -> str:
        now = self._clock()
        expires_at = now + (expiry if expiry is not None else self._expiry)
        # NumericDate may carry a fraction; whole seconds would end the
        # session up to a second before its expiry.
        payload = {
            "user_id": user_id,
            "email": email,
            "role": role.value,
            "iat": now.timestamp(),
            "exp": expires_at.timestamp(),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> SessionClaims:
        """Return the claims of a valid token.

        Raises TokenInvalidError for a bad signature, a foreign algorithm or
        a malformed payload, and TokenExpiredError once ``exp`` is reached.
        Time checks use the injected clock, not PyJWT's.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={
                    "require": _REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.PyJWTError as exc:
            logger.debug("Rejected token: %s", exc)
            raise TokenInvalidError("Invalid token") from None

        try:
            claims = SessionClaims.model_validate(payload)
        except pydantic.ValidationError:
            raise TokenInvalidError("Invalid token claims") from None

        if claims.expires_at <= self._clock():
            raise TokenExpiredError("Token has expired")
        return claims
