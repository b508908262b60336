"""
User Schemas

Pydantic models for user request/response validation. None of the response
models carry the password hash.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class PublicUserResponse(BaseModel):
    """Profile as shown to other users."""

    id: uuid.UUID
    username: str
    full_name: Optional[str] = None
    bio: Optional[str] = None
    profile_picture: Optional[str] = None
    instagram_url: Optional[str] = None
    tiktok_url: Optional[str] = None
    twitter_url: Optional[str] = None
    youtube_url: Optional[str] = None
    categories: Optional[list[str]] = None
    role: Optional[str] = None
    followers_count: int = 0
    following_count: int = 0
    trendx_points: int = 0

    model_config = {"from_attributes": True}


class UserResponse(PublicUserResponse):
    """Schema for the signed-in user (adds private fields)."""

    email: str
    is_email_verified: bool
    email_verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class UserUpdate(BaseModel):
    """Schema for updating user profile. Only provided fields are applied."""

    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    bio: Optional[str] = Field(None, max_length=1000)
    profile_picture: Optional[str] = Field(None, max_length=512)
    instagram_url: Optional[str] = Field(None, max_length=512)
    tiktok_url: Optional[str] = Field(None, max_length=512)
    twitter_url: Optional[str] = Field(None, max_length=512)
    youtube_url: Optional[str] = Field(None, max_length=512)
    categories: Optional[list[str]] = Field(None, max_length=20)
    role: Optional[str] = Field(None, max_length=50)
