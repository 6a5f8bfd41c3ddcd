"""
Authentication endpoints – password login with email OTP verification
and bearer JWT sessions.
"""

from fastapi import APIRouter, Request, status

from billing_auth.dependencies import AuthServiceDep, CurrentSession
from billing_auth.models import (
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    OtpSentResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    TokenResponse,
    UserInfo,
    VerifyOtpRequest,
)
from billing_auth.rate_limit import AUTH, STRICT, limiter

router = APIRouter(prefix="/api/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If your email is registered, you will receive a password reset OTP"


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    operation_id="register",
    summary="Create an account and send a verification OTP",
)
@limiter.limit(STRICT)
async def register(request: Request, body: RegisterRequest, service: AuthServiceDep) -> RegisterResponse:
    result = await service.register(body.name, body.email, body.password, body.role)
    return RegisterResponse(
        message="Registration successful. Please verify your email with the OTP sent.",
        otp_expires_in=result.otp_expires_in,
        user=UserInfo.from_user(result.user),
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    operation_id="login",
    summary="Check email and password; returns a token or asks for an OTP",
)
@limiter.limit(AUTH)
async def login(request: Request, body: LoginRequest, service: AuthServiceDep) -> LoginResponse:
    """
    Verified users get a bearer token straight away. Users who have not
    verified their email yet get a fresh OTP and must call /verify-otp.
    """
    result = await service.login(body.email, body.password)
    if result.requires_otp:
        message = "OTP sent to your email. Please verify to complete login."
    else:
        message = "Login successful"
    return LoginResponse(
        message=message,
        requires_otp=result.requires_otp,
        token=result.token,
        otp_expires_in=result.otp_expires_in,
        user=UserInfo.from_user(result.user),
    )


@router.post(
    "/verify-otp",
    response_model=TokenResponse,
    operation_id="verifyOtp",
    summary="Verify the login OTP and receive a bearer token",
)
@limiter.limit(AUTH)
async def verify_otp(request: Request, body: VerifyOtpRequest, service: AuthServiceDep) -> TokenResponse:
    grant = await service.verify_otp(body.email, body.otp)
    return TokenResponse(
        token=grant.token,
        expires_in=grant.expires_in,
        user=UserInfo.from_user(grant.user),
    )


@router.post(
    "/resend-otp",
    response_model=OtpSentResponse,
    operation_id="resendOtp",
    summary="Send a new login OTP, replacing the previous one",
)
@limiter.limit(STRICT)
async def resend_otp(request: Request, body: EmailRequest, service: AuthServiceDep) -> OtpSentResponse:
    expires_in = await service.resend_otp(body.email)
    return OtpSentResponse(message="OTP sent successfully", otp_expires_in=expires_in)


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    operation_id="forgotPassword",
    summary="Send a password reset OTP",
)
@limiter.limit(STRICT)
async def forgot_password(request: Request, body: EmailRequest, service: AuthServiceDep) -> MessageResponse:
    # Same answer whether or not the email is registered.
    await service.forgot_password(body.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    operation_id="resetPassword",
    summary="Set a new password using a reset OTP",
)
@limiter.limit(AUTH)
async def reset_password(request: Request, body: ResetPasswordRequest, service: AuthServiceDep) -> MessageResponse:
    await service.reset_password(body.email, body.otp, body.new_password)
    return MessageResponse(message="Password reset successfully")


@router.post(
    "/change-password",
    response_model=MessageResponse,
    operation_id="changePassword",
    summary="Change the password of the authenticated user",
)
@limiter.limit(AUTH)
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    session: CurrentSession,
    service: AuthServiceDep,
) -> MessageResponse:
    await service.change_password(session.user_id, body.old_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


@router.get(
    "/profile",
    response_model=UserInfo,
    operation_id="getProfile",
    summary="Get the authenticated user's profile",
)
async def get_profile(session: CurrentSession, service: AuthServiceDep) -> UserInfo:
    user = await service.get_profile(session.user_id)
    return UserInfo.from_user(user)
