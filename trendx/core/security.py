"""
Security Utilities

Password hashing, opaque token helpers, and user sanitization.
"""

import hashlib
import secrets
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

import bcrypt
from sqlalchemy import inspect

from trendx.core.config import settings


# bcrypt only looks at the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72

# Fields that must never cross a trust boundary
SENSITIVE_USER_FIELDS = frozenset({"password_hash", "password"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_password(password: str) -> str:
    """
    Hash a plain text password using bcrypt.

    Args:
        password: Plain text password to hash.

    Returns:
        str: Hashed password (salt and work factor embedded).

    Raises:
        ValueError: If the password is longer than bcrypt can represent.
    """
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain text password against a hashed password.

    A mismatch returns False; a malformed stored hash raises ValueError.

    Args:
        plain_password: Plain text password to verify.
        hashed_password: Hashed password to compare against.

    Returns:
        bool: True if passwords match, False otherwise.
    """
    password_bytes = plain_password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        # hash_password never accepts these, so nothing stored can match
        return False
    return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))


def sanitize_user(user: Any) -> dict:
    """
    Copy a user record without its credential fields.

    Accepts an ORM ``User`` instance or any mapping shaped like one, and is
    used on every external-facing serialization of a user.

    Args:
        user: User model instance or dict.

    Returns:
        dict: Plain dict of the user's columns minus sensitive fields.
    """
    if isinstance(user, Mapping):
        data = dict(user)
    else:
        mapper = inspect(user).mapper
        data = {attr.key: getattr(user, attr.key) for attr in mapper.column_attrs}

    for field in SENSITIVE_USER_FIELDS:
        data.pop(field, None)
    return data


def new_session_token() -> str:
    """Generate an opaque session token for the client cookie."""
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """Hash a token or code with SHA-256 for storage."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
