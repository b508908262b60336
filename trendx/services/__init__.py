"""
Trendx Backend - Services Module

Business logic layer: OTP lifecycle, sessions and email dispatch.
"""

from trendx.services import email_service
from trendx.services import otp_service
from trendx.services import session_service

__all__ = [
    "email_service",
    "otp_service",
    "session_service",
]
