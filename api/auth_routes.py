"""Authentication routes: register, login, me, forgot and reset password."""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, status

from Database.db import USERS_TABLE_NAME
from Database.deps import get_db
from settings import Settings, get_settings
from Users.auth import (
    Identity,
    TokenService,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)
from Users.user import User, UserProfile, normalize_email

from .errors import Conflict, InvalidInput, Unauthenticated
from .models import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    RegisterRequest,
    ResetPasswordRequest,
)
from .security import get_current_identity, get_token_service
from .utils import USER_PUBLIC_COLUMNS, _fetch_user_record, _run_query

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
INVALID_LOGIN = "Invalid email or password"
RESET_REQUESTED = "If an account exists for that email, a reset link has been sent."

# mount api router
auth_router = APIRouter()


def _checked_email(email: str) -> str:
    try:
        return normalize_email(email)
    except ValueError as exc:
        raise InvalidInput("Please provide a valid email address") from exc


def _checked_password(password: str) -> str:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


@auth_router.get("/health", response_model=MessageResponse)
async def health_check() -> MessageResponse:
    """Quick liveness check for the auth service."""

    return MessageResponse(status=status.HTTP_200_OK, message="Auth service is healthy")


@auth_router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_user(
    payload: RegisterRequest,
    db=Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> AuthResponse:
    """
    Create an account and return an access token for it.

    Args:
        payload: Name, email, password and optional phone.
        db: Supabase client injected via dependency.
        tokens: Token service used to sign the access token.

    Returns:
        AuthResponse with the token and the new profile.
    """

    if not payload.name or not payload.email or not payload.password:
        raise InvalidInput("Please provide name, email and password")

    email = _checked_email(payload.email)
    password = _checked_password(payload.password)

    existing = await _run_query(
        lambda: db.table(USERS_TABLE_NAME).select("id").eq("email", email).execute(),
        failure_detail="Unable to register user due to an internal error.",
        log_message="Failed to query existing users by email",
        log_context={"email": email},
    )
    if existing.data:
        raise Conflict(f"User with email {email} already exists")

    user = User(name=payload.name.strip(), email=email, phone=payload.phone)
    row = {**user.to_dict(), "password": hash_password(password)}

    await _run_query(
        lambda: db.table(USERS_TABLE_NAME).insert(row).execute(),
        failure_detail="Unable to register user due to an internal error.",
        log_message="Failed to insert user",
        log_context={"email": email},
        conflict_detail=f"User with email {email} already exists",
    )

    logger.info("User registered", extra={"user_id": str(user.id)})
    return AuthResponse(
        status=status.HTTP_201_CREATED,
        token=tokens.issue(user.id),
        user=UserProfile.from_record(user.to_dict()),
    )


@auth_router.post("/login", response_model=AuthResponse)
async def login_user(
    payload: LoginRequest,
    db=Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> AuthResponse:
    """Exchange email and password for an access token."""

    if not payload.email or not payload.password:
        raise InvalidInput("Please provide an email and password")

    email = payload.email.strip().lower()
    result = await _run_query(
        lambda: db.table(USERS_TABLE_NAME)
        .select(f"{USER_PUBLIC_COLUMNS}, password")
        .eq("email", email)
        .execute(),
        failure_detail="Unable to log in due to an internal error.",
        log_message="Failed to fetch user for login",
        log_context={"email": email},
    )

    record = result.data[0] if result.data else None
    if record is None or not verify_password(record.get("password"), payload.password):
        logger.info("Login failed", extra={"email": email})
        raise Unauthenticated(INVALID_LOGIN)

    logger.info("User logged in", extra={"user_id": str(record["id"])})
    return AuthResponse(
        status=status.HTTP_200_OK,
        token=tokens.issue(record["id"]),
        user=UserProfile.from_record(record),
    )


@auth_router.get("/me", response_model=ProfileResponse)
async def get_me(
    identity: Identity = Depends(get_current_identity), db=Depends(get_db)
) -> ProfileResponse:
    record = await _fetch_user_record(
        db, identity.user_id, failure_detail="Unable to retrieve user due to an internal error."
    )
    return ProfileResponse(status=status.HTTP_200_OK, user=UserProfile.from_record(record))


@auth_router.post("/forgotpassword", response_model=MessageResponse)
async def forgot_password(
    payload: ForgotPasswordRequest,
    db=Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    """
    Start a password reset.

    A hashed, short-lived reset token is stored on the account. The answer is
    the same whether or not the email belongs to an account.
    """

    if not payload.email:
        raise InvalidInput("Please provide an email")

    email = payload.email.strip().lower()
    result = await _run_query(
        lambda: db.table(USERS_TABLE_NAME).select("id").eq("email", email).execute(),
        failure_detail="Unable to process request due to an internal error.",
        log_message="Failed to fetch user for password reset",
        log_context={"email": email},
    )

    if result.data:
        user_id = str(result.data[0]["id"])
        raw_token, hashed_token = generate_reset_token()
        expires = datetime.now(timezone.utc) + timedelta(minutes=settings.reset_token_expire_minutes)
        updates = {
            "reset_password_token": hashed_token,
            "reset_password_expire": expires.isoformat(),
        }
        await _run_query(
            lambda: db.table(USERS_TABLE_NAME).update(updates).eq("id", user_id).execute(),
            failure_detail="Unable to process request due to an internal error.",
            log_message="Failed to store password reset token",
            log_context={"user_id": user_id},
        )
        logger.info("Password reset requested", extra={"user_id": user_id})
        logger.debug("Password reset link: %s/resetpassword/%s", settings.frontend_url, raw_token)

    return MessageResponse(status=status.HTTP_200_OK, message=RESET_REQUESTED)


@auth_router.put("/resetpassword", response_model=AuthResponse)
async def reset_password(
    payload: ResetPasswordRequest,
    db=Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> AuthResponse:
    """Set a new password using a reset token from forgot-password."""

    if not payload.token or not payload.password:
        raise InvalidInput("Please provide the reset token and a new password")

    password = _checked_password(payload.password)
    hashed_token = hash_reset_token(payload.token)

    result = await _run_query(
        lambda: db.table(USERS_TABLE_NAME)
        .select(f"{USER_PUBLIC_COLUMNS}, reset_password_expire")
        .eq("reset_password_token", hashed_token)
        .execute(),
        failure_detail="Unable to reset password due to an internal error.",
        log_message="Failed to fetch user by reset token",
        log_context={},
    )

    record = result.data[0] if result.data else None
    if record is None or not _reset_window_open(record.get("reset_password_expire")):
        raise InvalidInput("Invalid or expired reset token")

    user_id = str(record["id"])
    updates = {
        "password": hash_password(password),
        "reset_password_token": None,
        "reset_password_expire": None,
    }
    await _run_query(
        lambda: db.table(USERS_TABLE_NAME).update(updates).eq("id", user_id).execute(),
        failure_detail="Unable to reset password due to an internal error.",
        log_message="Failed to store new password",
        log_context={"user_id": user_id},
    )

    logger.info("Password reset", extra={"user_id": user_id})
    return AuthResponse(
        status=status.HTTP_200_OK,
        token=tokens.issue(user_id),
        user=UserProfile.from_record(record),
    )


def _reset_window_open(expires_at: object) -> bool:
    if not expires_at:
        return False
    try:
        expires = datetime.fromisoformat(str(expires_at))
    except ValueError:
        return False
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return expires > datetime.now(timezone.utc)
