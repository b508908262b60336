"""
Authentication Routes

Handles registration, OTP email verification, password login, logout and
password reset. Authenticated state is a server-side session carried in an
HTTP-only cookie.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from trendx.api.deps import (
    get_current_user,
    get_email_dispatcher,
    get_otp_store,
    get_session_store,
    get_session_token,
)
from trendx.core.config import settings
from trendx.core.database import get_db
from trendx.core.exceptions import (
    AuthError,
    ConflictError,
    DependencyError,
    EmailNotVerifiedError,
    ValidationError,
)
from trendx.core.security import hash_password, sanitize_user, utcnow, verify_password
from trendx.models.enums import OTPPurpose
from trendx.models.user import User
from trendx.schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    IssueOTPRequest,
    IssueOTPResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    VerifyOTPRequest,
)
from trendx.schemas.user import UserResponse
from trendx.services.email_service import EmailDispatcher
from trendx.services.otp_service import OTPError, OTPStore, normalize_email
from trendx.services.session_service import (
    SessionStore,
    clear_session_cookie,
    set_session_cookie,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

OTP_SENT_MESSAGE = "If an account exists for this email, a verification code has been sent."
RESET_SENT_MESSAGE = "If an account exists with this email, you'll receive a reset code."

# Route names and staff handles
RESERVED_USERNAMES = frozenset({"me", "admin", "support", "trendx"})


async def _get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(
        select(User).where(User.email == normalize_email(email))
    )
    return result.scalar_one_or_none()


async def _start_session(
    request: Request,
    response: Response,
    sessions: SessionStore,
    user: User,
) -> None:
    token = await sessions.create(
        user.id,
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )
    set_session_cookie(response, token)


async def _send_code(
    otp_store: OTPStore,
    dispatcher: EmailDispatcher,
    email: str,
    purpose: OTPPurpose,
) -> None:
    """
    Issue a fresh code and hand it to the dispatcher.

    During the resend cooldown nothing is issued and the caller answers as
    usual, so a repeat request looks the same for known and unknown emails.
    A code that could not be delivered is revoked so the retry is not held
    back by the cooldown.
    """
    remaining = await otp_store.seconds_until_resend(email, purpose)
    if remaining is not None:
        logger.info(f"{purpose.value} code for {email} requested during cooldown ({remaining}s left)")
        return

    otp_code = await otp_store.issue(email, purpose)
    try:
        await dispatcher.send_otp(email, otp_code, purpose)
    except DependencyError:
        await otp_store.revoke(email, purpose)
        raise


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new account (requires email verification)",
)
async def register(
    data: RegisterRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    otp_store: Annotated[OTPStore, Depends(get_otp_store)],
    dispatcher: Annotated[EmailDispatcher, Depends(get_email_dispatcher)],
) -> RegisterResponse:
    """
    Create an unverified account and send an email verification code.

    **Flow:**
    1. Reject a reserved (422) or duplicate (409) username, or a duplicate email
    2. Hash the password using bcrypt
    3. Create the user with is_email_verified=False
    4. Issue an OTP and dispatch it by email

    Raises:
        ValidationError: 422 if the username is reserved.
        ConflictError: 409 if the email or username is taken.
        DependencyError: 503 if the email cannot be sent in production.
    """
    email = normalize_email(data.email)

    if data.username.lower() in RESERVED_USERNAMES:
        raise ValidationError("Username is reserved", field="username")

    result = await db.execute(
        select(User).where(or_(User.email == email, User.username == data.username))
    )
    existing_user = result.scalars().first()
    if existing_user:
        field = "email" if existing_user.email == email else "username"
        raise ConflictError(f"{field.capitalize()} already registered", field=field)

    new_user = User(
        email=email,
        username=data.username,
        full_name=data.full_name,
        password_hash=hash_password(data.password),
        is_email_verified=False,
    )
    db.add(new_user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race against a concurrent registration
        await db.rollback()
        raise ConflictError("Email or username already registered")

    logger.info(f"Registered user {data.username} <{email}>")

    await _send_code(otp_store, dispatcher, email, OTPPurpose.EMAIL_VERIFICATION)

    return RegisterResponse(
        message="Account created! Please verify your email with the code we sent.",
        email=email,
        requires_verification=True,
    )


@router.post(
    "/otp",
    response_model=IssueOTPResponse,
    summary="Send (or resend) an email verification code",
)
async def issue_otp(
    data: IssueOTPRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    otp_store: Annotated[OTPStore, Depends(get_otp_store)],
    dispatcher: Annotated[EmailDispatcher, Depends(get_email_dispatcher)],
) -> IssueOTPResponse:
    """
    Issue a new verification code, replacing any pending one.

    Unknown and already verified emails get the same answer, without a code
    being issued. So do repeats inside the resend cooldown.

    Raises:
        DependencyError: 503 if the email cannot be sent in production.
    """
    user = await _get_user_by_email(db, data.email)

    if user is not None and not user.is_email_verified:
        await _send_code(otp_store, dispatcher, user.email, OTPPurpose.EMAIL_VERIFICATION)

    return IssueOTPResponse(
        message=OTP_SENT_MESSAGE,
        cooldown_seconds=settings.OTP_RESEND_COOLDOWN_SECONDS,
    )


@router.post(
    "/verify-otp",
    response_model=AuthResponse,
    summary="Verify email with OTP code",
)
async def verify_otp(
    data: VerifyOTPRequest,
    request: Request,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
    otp_store: Annotated[OTPStore, Depends(get_otp_store)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> AuthResponse:
    """
    Consume a verification code, mark the email verified and log in.

    Raises:
        AuthError: 401 for an unknown, used, expired or wrong code.
    """
    try:
        await otp_store.validate(data.email, data.otp, OTPPurpose.EMAIL_VERIFICATION)
    except OTPError:
        raise AuthError("Invalid or expired verification code")

    user = await _get_user_by_email(db, data.email)
    if user is None:
        raise AuthError("Invalid or expired verification code")

    if not user.is_email_verified:
        user.is_email_verified = True
        user.email_verified_at = utcnow()
        await db.commit()
        await db.refresh(user)
        logger.info(f"Email verified for {user.email}")

    await _start_session(request, response, sessions, user)

    return AuthResponse(
        message="Email verified",
        user=UserResponse.model_validate(sanitize_user(user)),
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login with email or username",
)
async def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
    otp_store: Annotated[OTPStore, Depends(get_otp_store)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
    dispatcher: Annotated[EmailDispatcher, Depends(get_email_dispatcher)],
) -> AuthResponse:
    """
    Authenticate with a password and start a session.

    **Flow:**
    1. Find user by email (identifier contains '@') or username
    2. Verify password against stored hash
    3. Check email is verified; if not, send a fresh code and refuse
    4. Create a session and set the cookie

    Raises:
        AuthError: 401 if credentials are invalid.
        EmailNotVerifiedError: 403 if the email is not verified yet.
    """
    identifier = data.identifier.strip()
    if "@" in identifier:
        condition = User.email == normalize_email(identifier)
    else:
        condition = User.username == identifier

    result = await db.execute(select(User).where(condition))
    user = result.scalar_one_or_none()

    if not user or not verify_password(data.password, user.password_hash):
        logger.info(f"Failed login for {identifier}")
        raise AuthError("Invalid credentials")

    if not user.is_email_verified:
        # Send a new code for convenience, unless one went out moments ago
        await _send_code(otp_store, dispatcher, user.email, OTPPurpose.EMAIL_VERIFICATION)
        raise EmailNotVerifiedError(
            "Email not verified. A verification code has been sent to your email."
        )

    await _start_session(request, response, sessions, user)
    logger.info(f"User {user.username} logged in")

    return AuthResponse(
        message="Logged in",
        user=UserResponse.model_validate(sanitize_user(user)),
    )


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="End the current session",
)
async def logout(
    request: Request,
    response: Response,
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> MessageResponse:
    """Invalidate the session server-side and clear the cookie. Always succeeds."""
    await sessions.destroy(get_session_token(request))
    clear_session_cookie(response)
    return MessageResponse(message="Logged out")


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get the signed-in user",
)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    return sanitize_user(current_user)


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request password reset OTP",
)
async def forgot_password(
    data: ForgotPasswordRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    otp_store: Annotated[OTPStore, Depends(get_otp_store)],
    dispatcher: Annotated[EmailDispatcher, Depends(get_email_dispatcher)],
) -> MessageResponse:
    """
    Request a password reset code.

    The response is the same whether or not the email belongs to an account,
    and whether or not the resend cooldown is running.

    Raises:
        DependencyError: 503 if the email cannot be sent in production.
    """
    user = await _get_user_by_email(db, data.email)

    if user is not None:
        await _send_code(otp_store, dispatcher, user.email, OTPPurpose.PASSWORD_RESET)

    return MessageResponse(message=RESET_SENT_MESSAGE)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Reset password with OTP",
)
async def reset_password(
    data: ResetPasswordRequest,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
    otp_store: Annotated[OTPStore, Depends(get_otp_store)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> MessageResponse:
    """
    Set a new password using a reset code.

    Every existing session of the user is dropped.

    Raises:
        AuthError: 401 for an unknown, used, expired or wrong code.
    """
    try:
        await otp_store.validate(data.email, data.otp, OTPPurpose.PASSWORD_RESET)
    except OTPError:
        raise AuthError("Invalid or expired code. Please request a new one.")

    user = await _get_user_by_email(db, data.email)
    if user is None:
        raise AuthError("Invalid or expired code. Please request a new one.")

    user.password_hash = hash_password(data.new_password)
    await db.commit()

    dropped = await sessions.destroy_all_for_user(user.id)
    clear_session_cookie(response)
    logger.info(f"Password reset for {user.email}, {dropped} session(s) dropped")

    return MessageResponse(
        message="Password reset successfully. You can now log in with your new password."
    )
