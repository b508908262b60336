"""
API Dependencies

Reusable dependencies for API routes: per-request stores, the shared email
dispatcher, and the session guard for protected routes.
"""

import uuid
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trendx.core.config import settings
from trendx.core.database import get_db
from trendx.core.exceptions import AuthError, DependencyError
from trendx.models.user import User
from trendx.services.email_service import EmailDispatcher
from trendx.services.otp_service import OTPStore
from trendx.services.session_service import SessionStore


async def get_otp_store(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OTPStore:
    return OTPStore(db)


async def get_session_store(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SessionStore:
    return SessionStore(db)


async def get_email_dispatcher(request: Request) -> EmailDispatcher:
    """The dispatcher built at startup (see main.lifespan)."""
    dispatcher = getattr(request.app.state, "email_dispatcher", None)
    if dispatcher is None:
        raise DependencyError("Email dispatcher not initialized")
    return dispatcher


def get_session_token(request: Request) -> str | None:
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


async def require_auth(
    request: Request,
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> uuid.UUID:
    """
    Guard for protected routes.

    Resolves the session cookie to a user id. Missing, expired or orphaned
    sessions raise 401 before the handler runs. On success the id is also
    stored on ``request.state.user_id``.

    Raises:
        AuthError: 401 if there is no valid session.
    """
    user_id = await sessions.resolve(get_session_token(request))
    if user_id is None:
        raise AuthError("Not authenticated")

    request.state.user_id = user_id
    return user_id


async def get_current_user(
    user_id: Annotated[uuid.UUID, Depends(require_auth)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency to get the current authenticated user.

    Raises:
        AuthError: 401 if the session's user no longer exists.
    """
    result = await db.execute(
        select(User).where(User.id == user_id)
    )
    user = result.scalar_one_or_none()

    if user is None:
        raise AuthError("Not authenticated")

    return user

