"""
Database Enums

Python Enums that map to PostgreSQL ENUM types.
"""

import enum


class OTPPurpose(str, enum.Enum):
    """OTP purpose enumeration."""
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PASSWORD_RESET = "PASSWORD_RESET"
