"""
Trendx Backend - Models Module

This module exports all SQLAlchemy models for the application.
Import Base to get the full metadata.
"""

from trendx.core.database import Base

# Enums
from trendx.models.enums import OTPPurpose

# Models
from trendx.models.user import User
from trendx.models.otp_code import OTPCode
from trendx.models.session import UserSession

__all__ = [
    # Base
    "Base",
    # Enums
    "OTPPurpose",
    # Models
    "User",
    "OTPCode",
    "UserSession",
]
