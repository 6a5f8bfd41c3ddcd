"""
Authentication orchestration – register, login, OTP and password flows.

Ties the throttle guard, OTP manager and session issuer to the credential
store and notifier. Every public method either returns a result or raises
an ``AuthServiceError`` subclass; the HTTP layer translates those.

Identity policy: emails are case-folded and stripped before any lookup or
ephemeral key is built. Whether an email is registered is never revealed
on unauthenticated paths: unknown identities get the same answer as a
wrong password (login), a wrong code (verify / reset) or a generic
acknowledgement (resend / forgot).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from billing_auth.db import CredentialStore
from billing_auth.errors import (
    AuthenticationError,
    DeliveryError,
    EmailAlreadyRegisteredError,
    NotFoundError,
    ThrottledError,
    ValidationError,
)
from billing_auth.models import NewUser, OtpPurpose, Role, SessionClaims, User, UserStatus
from billing_auth.services.email import Notifier, TemplateKind
from billing_auth.services.otp import OtpCheck, OtpManager
from billing_auth.services.passwords import PasswordHasher
from billing_auth.services.session import SessionIssuer, utcnow
from billing_auth.services.throttle import ThrottleGuard

logger = logging.getLogger(__name__)

_TEMPLATES = {
    OtpPurpose.LOGIN_VERIFICATION: TemplateKind.LOGIN_OTP,
    OtpPurpose.PASSWORD_RESET: TemplateKind.PASSWORD_RESET,
}


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass
class RegistrationResult:
    user: User
    otp_expires_in: int


@dataclass
class LoginResult:
    user: User
    requires_otp: bool
    token: str | None = None
    otp_expires_in: int | None = None


@dataclass
class SessionGrant:
    user: User
    token: str
    expires_in: int


class AuthService:
    def __init__(
        self,
        *,
        users: CredentialStore,
        throttle: ThrottleGuard,
        otps: OtpManager,
        sessions: SessionIssuer,
        notifier: Notifier,
        hasher: PasswordHasher,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._users = users
        self._throttle = throttle
        self._otps = otps
        self._sessions = sessions
        self._notifier = notifier
        self._hasher = hasher
        self._clock = clock

    # ── Registration ───────────────────────────────────────────────────

    async def register(self, name: str, email: str, password: str, role: Role = Role.CUSTOMER) -> RegistrationResult:
        identity = normalize_email(email)
        if await self._users.find_by_email(identity) is not None:
            raise EmailAlreadyRegisteredError()

        password_hash = await self._hasher.hash(password)
        # create() still raises on a concurrent registration of the same email
        user = await self._users.create(
            NewUser(name=name, email=identity, password_hash=password_hash, role=role)
        )

        try:
            await self._issue_and_send(user, OtpPurpose.LOGIN_VERIFICATION)
        except DeliveryError:
            # The code is stored; the user can ask for it again via resend.
            logger.warning("OTP email for new user %s not delivered; resend required", identity)

        expires_in = await self._otps.remaining_ttl(identity, OtpPurpose.LOGIN_VERIFICATION)
        return RegistrationResult(user=user, otp_expires_in=expires_in)

    # ── Login ──────────────────────────────────────────────────────────

    async def login(self, email: str, password: str) -> LoginResult:
        identity = normalize_email(email)

        retry_after = await self._throttle.retry_after(identity)
        if retry_after > 0:
            raise ThrottledError(
                "Account temporarily blocked due to too many failed attempts. "
                f"Please try again in {_minutes(retry_after)} minute(s).",
                retry_after=retry_after,
            )

        user = await self._users.find_by_email(identity)
        if user is None:
            await self._hasher.burn(password)
            raise await self._failed_login(identity)
        if not await self._hasher.verify(password, user.password_hash):
            raise await self._failed_login(identity)

        if user.status != UserStatus.ACTIVE:
            raise AuthenticationError("Account is not active")

        await self._throttle.record_success(identity)

        if not user.is_verified:
            await self._issue_and_send(user, OtpPurpose.LOGIN_VERIFICATION)
            expires_in = await self._otps.remaining_ttl(identity, OtpPurpose.LOGIN_VERIFICATION)
            return LoginResult(user=user, requires_otp=True, otp_expires_in=expires_in)

        user.last_login = self._clock()
        await self._users.save(user)
        token = self._sessions.mint(user.id, user.email, user.role)
        logger.info("User %s logged in", identity)
        return LoginResult(user=user, requires_otp=False, token=token)

    async def _failed_login(self, identity: str) -> AuthenticationError:
        await self._throttle.record_failure(identity)
        remaining = await self._throttle.attempts_remaining(identity)
        if remaining > 0:
            message = f"Invalid email or password. {remaining} attempt(s) remaining."
        else:
            message = (
                "Account blocked due to too many failed attempts. "
                f"Please try again after {_minutes(self._throttle.block_duration)} minute(s)."
            )
        return AuthenticationError(message, {"remaining_attempts": remaining})

    # ── OTP verification ───────────────────────────────────────────────

    async def verify_otp(self, email: str, code: str) -> SessionGrant:
        identity = normalize_email(email)
        user = await self._users.find_by_email(identity)
        if user is None:
            raise AuthenticationError("OTP has expired or not found")

        await self._check_code(identity, OtpPurpose.LOGIN_VERIFICATION, code)
        # Single use: gone before the token exists.
        await self._otps.invalidate(identity, OtpPurpose.LOGIN_VERIFICATION)

        if user.status != UserStatus.ACTIVE:
            raise AuthenticationError("Account is not active")

        user.is_verified = True
        user.last_login = self._clock()
        await self._users.save(user)
        await self._throttle.record_success(identity)

        token = self._sessions.mint(user.id, user.email, user.role)
        logger.info("User %s verified by OTP", identity)
        return SessionGrant(
            user=user,
            token=token,
            expires_in=int(self._sessions.expiry.total_seconds()),
        )

    async def resend_otp(self, email: str) -> int:
        """Re-issue the login-verification code; returns seconds until it expires."""
        identity = normalize_email(email)
        user = await self._users.find_by_email(identity)
        if user is None or user.status != UserStatus.ACTIVE:
            logger.info("Resend requested for unknown or inactive identity %s", identity)
            return self._otps.expiry

        await self._issue_and_send(user, OtpPurpose.LOGIN_VERIFICATION)
        return await self._otps.remaining_ttl(identity, OtpPurpose.LOGIN_VERIFICATION)

    # ── Password reset / change ────────────────────────────────────────

    async def forgot_password(self, email: str) -> None:
        identity = normalize_email(email)
        user = await self._users.find_by_email(identity)
        if user is None or user.status != UserStatus.ACTIVE:
            logger.info("Password reset requested for unknown or inactive identity %s", identity)
            return
        await self._issue_and_send(user, OtpPurpose.PASSWORD_RESET)

    async def reset_password(self, email: str, code: str, new_password: str) -> None:
        identity = normalize_email(email)
        user = await self._users.find_by_email(identity)
        if user is None:
            raise AuthenticationError("OTP has expired or not found")

        await self._check_code(identity, OtpPurpose.PASSWORD_RESET, code)

        # Saving first keeps the code usable if the write fails; the update
        # itself is idempotent, so a retried reset is harmless.
        user.password_hash = await self._hasher.hash(new_password)
        user.is_verified = True
        await self._users.save(user)
        await self._otps.invalidate(identity, OtpPurpose.PASSWORD_RESET)
        logger.info("Password reset for %s", identity)

    async def change_password(self, user_id: int, old_password: str, new_password: str) -> None:
        user = await self.get_profile(user_id)
        if not await self._hasher.verify(old_password, user.password_hash):
            raise ValidationError("Old password is incorrect")
        user.password_hash = await self._hasher.hash(new_password)
        await self._users.save(user)
        logger.info("Password changed for user %d", user_id)

    # ── Sessions ───────────────────────────────────────────────────────

    def authenticate(self, token: str) -> SessionClaims:
        return self._sessions.verify(token)

    async def get_profile(self, user_id: int) -> User:
        user = await self._users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def list_users(self) -> list[User]:
        """All user records, for admin views. Role checks happen at the route."""
        return await self._users.list_users()

    # ── Helpers ────────────────────────────────────────────────────────

    async def _check_code(self, identity: str, purpose: OtpPurpose, code: str) -> None:
        result = await self._otps.verify(identity, purpose, code)
        if result is OtpCheck.EXPIRED:
            raise AuthenticationError("OTP has expired or not found")
        if result is OtpCheck.MISMATCH:
            raise AuthenticationError("Invalid OTP")

    async def _issue_and_send(self, user: User, purpose: OtpPurpose) -> None:
        """Store a fresh code, then deliver it. Delivery failure leaves the code in place."""
        code = await self._otps.issue(user.email, purpose)
        await self._notifier.send(
            user.email,
            _TEMPLATES[purpose],
            name=user.name,
            code=code,
            expiry_minutes=_minutes(self._otps.expiry),
        )


def _minutes(seconds: int) -> int:
    return max(1, -(-seconds // 60))
