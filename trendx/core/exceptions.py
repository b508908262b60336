"""
Application Exceptions

HTTP-facing error taxonomy. Services raise their own component errors;
endpoints map those onto these classes.
"""

from typing import Optional

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base class: subclasses set status_code and a default detail."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "Internal server error"

    def __init__(
        self,
        detail: Optional[str] = None,
        headers: Optional[dict] = None,
        field: Optional[str] = None,
    ):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.detail,
            headers=headers,
        )
        self.field = field


class ValidationError(AppException):
    """422 Malformed input, reported against a single field."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    detail = "Validation error"


class AuthError(AppException):
    """401 Bad credentials, bad code, or missing session."""
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Not authenticated"


class EmailNotVerifiedError(AuthError):
    """403 Correct password but the email address is not verified yet."""
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Email not verified"


class NotFoundError(AppException):
    """404 Not Found"""
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Resource not found"


class ConflictError(AppException):
    """409 Duplicate email or username"""
    status_code = status.HTTP_409_CONFLICT
    detail = "Resource already exists"


class DependencyError(AppException):
    """503 Database or mail transport unavailable"""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Service temporarily unavailable"
