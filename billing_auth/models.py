"""Pydantic models for the billing authentication API."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from billing_auth.config import OTP_LENGTH

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 72  # bcrypt only looks at the first 72 bytes


class Role(str, Enum):
    ADMIN = "admin"
    FINANCE = "finance"
    CUSTOMER = "customer"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class OtpPurpose(str, Enum):
    """What a one-time code proves. Each purpose has its own key namespace."""
    LOGIN_VERIFICATION = "login-verification"
    PASSWORD_RESET = "password-reset"


# ── Domain records ────────────────────────────────────────────────────────


class NewUser(BaseModel):
    """A user record that has not been persisted yet."""
    name: str
    email: str
    password_hash: str
    role: Role = Role.CUSTOMER
    status: UserStatus = UserStatus.ACTIVE
    is_verified: bool = False


class User(NewUser):
    """A persisted user record as held by the credential store."""
    id: int
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class SessionClaims(BaseModel):
    """Decoded, validated contents of a session token.

    Unknown claims are rejected rather than ignored.
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    user_id: int = Field(..., strict=True, description="Credential store id of the user")
    email: str = Field(..., description="Normalised email of the user")
    role: Role = Field(..., description="Role at the time the token was minted")
    issued_at: datetime = Field(..., alias="iat")
    expires_at: datetime = Field(..., alias="exp")

    @field_validator("issued_at", "expires_at", mode="before")
    @classmethod
    def _numeric_date(cls, value: Any) -> Any:
        # Round fractional seconds to the microsecond instead of truncating.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                return datetime.fromtimestamp(value, timezone.utc)
            except (OverflowError, OSError) as exc:
                raise ValueError("NumericDate out of range") from exc
        return value


# ── Requests ──────────────────────────────────────────────────────────────


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    email: EmailStr = Field(..., description="Login email address")
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    role: Role = Field(default=Role.CUSTOMER, description="Account role")


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=OTP_LENGTH, max_length=OTP_LENGTH)


class EmailRequest(BaseModel):
    """Body for endpoints that only need an email (resend / forgot)."""
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=OTP_LENGTH, max_length=OTP_LENGTH)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)


# ── Responses ─────────────────────────────────────────────────────────────


class UserInfo(BaseModel):
    """Public view of a user record (no password hash)."""
    id: int
    name: str
    email: str
    role: Role
    status: UserStatus
    is_verified: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserInfo":
        return cls.model_validate(user.model_dump(exclude={"password_hash"}))


class RegisterResponse(BaseModel):
    message: str
    requires_otp: bool = True
    otp_expires_in: int = Field(..., description="Seconds until the OTP expires")
    user: UserInfo


class LoginResponse(BaseModel):
    message: str
    requires_otp: bool
    token: Optional[str] = Field(None, description="Bearer token, present when no OTP is required")
    otp_expires_in: Optional[int] = Field(None, description="Seconds until the OTP expires")
    user: UserInfo


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
    user: UserInfo


class OtpSentResponse(BaseModel):
    message: str
    otp_expires_in: int


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime


class Error(BaseModel):
    """Error response body."""
    error: str = Field(..., description="Error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
