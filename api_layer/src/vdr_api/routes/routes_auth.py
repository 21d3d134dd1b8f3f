"""
Authentication Routes

Email OTP login, self registration and password reset. One-time codes live in the
``one_time_codes`` table with an expiry and are deleted when used.
"""

from datetime import timedelta

from fastapi import APIRouter
from fastapi import Depends
from fastapi import status
from loguru import logger

from vdr_api.auth.passwords import MIN_PASSWORD_LENGTH
from vdr_api.auth.passwords import check_new_password
from vdr_api.auth.passwords import hash_password
from vdr_api.auth.tokens import Principal
from vdr_api.auth.tokens import TokenService
from vdr_api.background import BackgroundSpawner
from vdr_api.db.repository_one_time_code import OneTimeCodeRepository
from vdr_api.db.repository_user import UserRepository
from vdr_api.dependencies import get_activity_logger
from vdr_api.dependencies import get_background
from vdr_api.dependencies import get_notifier
from vdr_api.dependencies import get_one_time_code_repository
from vdr_api.dependencies import get_settings
from vdr_api.dependencies import get_token_service
from vdr_api.dependencies import get_user_repository
from vdr_api.enums import CodePurpose
from vdr_api.errors import ConflictError
from vdr_api.errors import InputValidationError
from vdr_api.errors import NotFoundError
from vdr_api.monitoring.activity import ActivityLogger
from vdr_api.notify.notifier import Notifier
from vdr_api.notify.notifier import html_message
from vdr_api.schemas.schemas import EmailBody
from vdr_api.schemas.schemas import OtpVerifyBody
from vdr_api.schemas.schemas import RegisterBody
from vdr_api.schemas.schemas import ResetPasswordBody
from vdr_api.settings import Settings

ROUTER_AUTH = APIRouter(tags=["Auth"], prefix="/auth")

RESET_REQUESTED_MESSAGE = "If the email exists, a password reset OTP has been sent"


@ROUTER_AUTH.post("/request-otp")
async def request_otp(
    body: EmailBody,
    settings: Settings = Depends(get_settings),
    users: UserRepository = Depends(get_user_repository),
    codes: OneTimeCodeRepository = Depends(get_one_time_code_repository),
    notifier: Notifier = Depends(get_notifier),
    background: BackgroundSpawner = Depends(get_background),
):
    """Email a 6-digit login code to an existing user."""
    if not await users.exists(body.email):
        raise NotFoundError("User not found")

    otp = await codes.issue(CodePurpose.LOGIN_OTP.value, body.email, settings.otp_ttl_seconds)
    minutes = max(settings.otp_ttl_seconds // 60, 1)
    background.spawn(
        notifier.email_user(
            body.email, "VDR OTP Login", html_message(f"Your OTP is: {otp}. It expires in {minutes} minutes.")
        ),
        name="email-login-otp",
    )
    logger.info("Login OTP issued", email=body.email)
    return {"message": "OTP sent to email"}


@ROUTER_AUTH.post("/verify-otp")
async def verify_otp(
    body: OtpVerifyBody,
    settings: Settings = Depends(get_settings),
    users: UserRepository = Depends(get_user_repository),
    codes: OneTimeCodeRepository = Depends(get_one_time_code_repository),
    tokens: TokenService = Depends(get_token_service),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Exchange a valid OTP for a bearer token."""
    if not await codes.consume(CodePurpose.LOGIN_OTP.value, body.email, body.otp.strip()):
        raise InputValidationError("Invalid or expired OTP")

    user = await users.get_by_email(body.email)
    if user is None:
        raise NotFoundError("User not found")

    principal = Principal(email=user["email"], role=user["role"], name=user["name"])
    token = tokens.issue(principal, timedelta(hours=settings.jwt_expiry_hours))
    logger.success("User logged in", email=principal.email, role=principal.role)
    activity.record(principal, "login", "Logged in with OTP")
    return {
        "token": token,
        "role": principal.role,
        "user": {"id": user["id"], "name": user["name"], "email": user["email"], "role": user["role"]},
    }


@ROUTER_AUTH.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterBody,
    users: UserRepository = Depends(get_user_repository),
    notifier: Notifier = Depends(get_notifier),
    background: BackgroundSpawner = Depends(get_background),
):
    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise InputValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if await users.exists(body.email):
        raise ConflictError("User already exists")

    user_id = await users.create(body.name, body.email, hash_password(body.password), body.role.value)
    logger.info("User registered", user_id=str(user_id), email=body.email, role=body.role.value)
    background.spawn(
        notifier.email_user(
            body.email, "VDR Registration", html_message(f"Hello {body.name}, your account has been created.")
        ),
        name="email-registration",
    )
    return {"message": "User registered successfully", "id": user_id}


@ROUTER_AUTH.post("/forgot-password")
async def forgot_password(
    body: EmailBody,
    settings: Settings = Depends(get_settings),
    users: UserRepository = Depends(get_user_repository),
    codes: OneTimeCodeRepository = Depends(get_one_time_code_repository),
    notifier: Notifier = Depends(get_notifier),
    background: BackgroundSpawner = Depends(get_background),
):
    """Email a password reset code. The response is identical whether or not the account exists."""
    if not await users.exists(body.email):
        logger.info("Password reset requested for unknown email", email=body.email)
        return {"message": RESET_REQUESTED_MESSAGE}

    token = await codes.issue(CodePurpose.PASSWORD_RESET.value, body.email, settings.reset_token_ttl_seconds)
    minutes = max(settings.reset_token_ttl_seconds // 60, 1)
    background.spawn(
        notifier.email_user(
            body.email,
            "VDR Password Reset",
            html_message(f"Your password reset OTP is: {token}. This OTP will expire in {minutes} minutes."),
        ),
        name="email-password-reset",
    )
    logger.info("Password reset code issued", email=body.email)
    return {"message": RESET_REQUESTED_MESSAGE}


@ROUTER_AUTH.post("/reset-password")
async def reset_password(
    body: ResetPasswordBody,
    users: UserRepository = Depends(get_user_repository),
    codes: OneTimeCodeRepository = Depends(get_one_time_code_repository),
):
    check_new_password(body.new_password, body.confirm_password)
    if not await codes.consume(CodePurpose.PASSWORD_RESET.value, body.email, body.token.strip()):
        raise InputValidationError("Invalid or expired OTP. Please request a new OTP.")
    if not await users.update_password(body.email, hash_password(body.new_password)):
        raise NotFoundError("User not found")

    logger.info("Password reset", email=body.email)
    return {"message": "Password reset successfully"}
