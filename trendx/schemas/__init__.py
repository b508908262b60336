"""
Trendx Backend - Schemas Module

Pydantic models for request/response validation.
"""

from trendx.schemas.user import PublicUserResponse, UserResponse, UserUpdate
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

__all__ = [
    # User
    "PublicUserResponse",
    "UserResponse",
    "UserUpdate",
    # Auth
    "AuthResponse",
    "ForgotPasswordRequest",
    "IssueOTPRequest",
    "IssueOTPResponse",
    "LoginRequest",
    "MessageResponse",
    "RegisterRequest",
    "RegisterResponse",
    "ResetPasswordRequest",
    "VerifyOTPRequest",
]
