"""
Auth Schemas

Pydantic models for authentication request/response validation.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator

from trendx.core.config import settings
from trendx.core.security import BCRYPT_MAX_BYTES
from trendx.schemas.user import UserResponse


USERNAME_PATTERN = r"^[A-Za-z0-9_.]+$"


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")
    return value


def _check_otp_format(value: str) -> str:
    # Same length as generate_otp produces
    if len(value) != settings.OTP_LENGTH or not (value.isascii() and value.isdigit()):
        raise ValueError(f"OTP must be {settings.OTP_LENGTH} digits")
    return value


class RegisterRequest(BaseModel):
    """Schema for account registration (requires email verification)."""

    email: EmailStr = Field(..., description="User's email address")
    username: str = Field(
        ...,
        min_length=3,
        max_length=50,
        pattern=USERNAME_PATTERN,
        description="Public handle (letters, digits, '_' and '.')",
    )
    password: str = Field(..., min_length=8, max_length=72, description="Password (min 8 characters)")
    full_name: str | None = Field(None, max_length=255, description="User's full name")

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, value: str) -> str:
        return _check_password_bytes(value)


class RegisterResponse(BaseModel):
    """Schema for registration response."""

    message: str
    email: str
    requires_verification: bool = True


class IssueOTPRequest(BaseModel):
    """Schema for (re)sending a verification code."""

    email: EmailStr = Field(..., description="User's email address")


class IssueOTPResponse(BaseModel):
    message: str
    cooldown_seconds: int | None = None


class VerifyOTPRequest(BaseModel):
    """Schema for email verification request."""

    email: EmailStr = Field(..., description="User's email address")
    otp: str = Field(..., description="Numeric OTP code (OTP_LENGTH digits)")

    @field_validator("otp")
    @classmethod
    def check_otp_format(cls, value: str) -> str:
        return _check_otp_format(value)


class LoginRequest(BaseModel):
    """Schema for password login. The identifier is an email or a username."""

    identifier: str = Field(..., min_length=1, max_length=255, description="Email or username")
    password: str = Field(..., min_length=1, description="User's password")


class AuthResponse(BaseModel):
    """Returned when a session has been established."""

    message: str
    user: UserResponse


class MessageResponse(BaseModel):
    message: str


class ForgotPasswordRequest(BaseModel):
    """Schema for forgot password request."""

    email: EmailStr = Field(..., description="User's email address")


class ResetPasswordRequest(BaseModel):
    """Schema for reset password request."""

    email: EmailStr = Field(..., description="User's email address")
    otp: str = Field(..., description="Numeric OTP code (OTP_LENGTH digits)")
    new_password: str = Field(..., min_length=8, max_length=72, description="New password (min 8 characters)")

    @field_validator("otp")
    @classmethod
    def check_otp_format(cls, value: str) -> str:
        return _check_otp_format(value)

    @field_validator("new_password")
    @classmethod
    def check_password_bytes(cls, value: str) -> str:
        return _check_password_bytes(value)
