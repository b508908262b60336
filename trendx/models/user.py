"""
User Model

Core user entity: identity, credentials, verification state and profile.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from trendx.core.database import Base


class User(Base):
    """
    User model for Trendx members.

    Attributes:
        id: UUID primary key for public-facing identification.
        email: Unique lower-cased email address.
        username: Unique handle shown on posts and profiles.
        password_hash: bcrypt hash (never serialized, see sanitize_user).
        is_email_verified: Set once an EMAIL_VERIFICATION code is consumed.
        followers_count / following_count: Maintained by the follow feature.
        trendx_points: Points awarded from trend competitions.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        index=True,
        nullable=False,
    )
    full_name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Email Verification
    is_email_verified: Mapped[bool] = mapped_column(
        default=False,
        nullable=False,
    )
    email_verified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Profile
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    profile_picture: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    instagram_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    tiktok_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    twitter_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    youtube_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    categories: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    role: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Counters
    followers_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    following_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    trendx_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username}, email={self.email})>"
