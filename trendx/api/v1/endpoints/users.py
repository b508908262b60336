"""
User Routes

Endpoints for user profiles. The signed-in user's own record is served by
GET /auth/me.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trendx.api.deps import get_current_user
from trendx.core.database import get_db
from trendx.core.exceptions import NotFoundError
from trendx.core.security import sanitize_user
from trendx.models.user import User
from trendx.schemas.user import PublicUserResponse, UserResponse, UserUpdate


router = APIRouter(prefix="/users", tags=["Users"])


@router.patch(
    "/me",
    response_model=UserResponse,
    summary="Update current user profile",
)
async def update_me(
    user_update: UserUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """
    Update the currently logged-in user's profile.

    Only provided fields will be updated. Email, username and counters are
    not editable here.
    """
    for field, value in user_update.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)

    await db.commit()
    await db.refresh(current_user)

    return sanitize_user(current_user)


@router.get(
    "/{username}",
    response_model=PublicUserResponse,
    summary="Get a public profile",
)
async def get_user(
    username: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    result = await db.execute(
        select(User).where(User.username == username)
    )
    user = result.scalar_one_or_none()

    if user is None:
        raise NotFoundError("User not found")

    return sanitize_user(user)
