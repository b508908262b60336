"""
Session Service

Server-side sessions behind an opaque HTTP-only cookie.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from fastapi import Response
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from trendx.core.config import settings
from trendx.core.security import hash_token, new_session_token, utcnow
from trendx.models.session import UserSession
from trendx.models.user import User


logger = logging.getLogger(__name__)


class SessionStore:
    """
    Creates, resolves and destroys sessions.

    Only the SHA-256 of a token is persisted, so a leaked table cannot be
    replayed as cookies.
    """

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
        lifetime_minutes: Optional[int] = None,
    ):
        self.db = db
        self._clock = clock
        self.lifetime_minutes = lifetime_minutes or settings.SESSION_EXPIRE_MINUTES

    async def create(
        self,
        user_id: uuid.UUID,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> str:
        """
        Start a session for a user.

        Returns:
            str: The raw token to put in the cookie.
        """
        token = new_session_token()
        now = self._clock()
        self.db.add(
            UserSession(
                user_id=user_id,
                token_hash=hash_token(token),
                created_at=now,
                expires_at=now + timedelta(minutes=self.lifetime_minutes),
                user_agent=(user_agent or "")[:255] or None,
                ip_address=ip_address,
            )
        )
        await self.db.commit()
        logger.info(f"Session created for user {user_id}")
        return token

    async def resolve(self, token: Optional[str]) -> Optional[uuid.UUID]:
        """
        Map a cookie token to a user id.

        Missing, expired and orphaned sessions (user row gone) all resolve
        to None.
        """
        if not token:
            return None

        result = await self.db.execute(
            select(UserSession.user_id)
            .join(User, User.id == UserSession.user_id)
            .where(
                UserSession.token_hash == hash_token(token),
                UserSession.expires_at > self._clock(),
            )
        )
        return result.scalar_one_or_none()

    async def destroy(self, token: Optional[str]) -> None:
        """Invalidate a session. Unknown or missing tokens are a no-op."""
        if not token:
            return
        await self.db.execute(
            delete(UserSession)
            .where(UserSession.token_hash == hash_token(token))
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    async def destroy_all_for_user(self, user_id: uuid.UUID) -> int:
        """Invalidate every session of a user, e.g. after a password reset."""
        result = await self.db.execute(
            delete(UserSession)
            .where(UserSession.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def cleanup_expired(self) -> int:
        """
        Remove expired sessions.

        Returns:
            int: Number of sessions deleted.
        """
        result = await self.db.execute(
            delete(UserSession)
            .where(UserSession.expires_at <= self._clock())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0


def set_session_cookie(response: Response, token: str) -> None:
    """Attach the session cookie; secure cross-site cookie in production."""
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="none" if settings.is_production else "lax",
        max_age=settings.SESSION_EXPIRE_MINUTES * 60,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="none" if settings.is_production else "lax",
    )
