"""Exception handlers registered on the FastAPI application"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from trendx.core.exceptions import AppException, DependencyError

logger = logging.getLogger(__name__)


async def app_exception_handler(request: Request, exc: AppException):
    """
    Render taxonomy errors, adding the offending field when there is one
    """
    content = {"detail": exc.detail}
    if exc.field:
        content["field"] = exc.field

    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__} on {request.url.path}: {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handle request body/query validation errors
    """
    errors = []
    for error in exc.errors():
        # Drop the leading "body"/"query" marker so clients get the field name
        loc = [str(x) for x in error["loc"] if x not in ("body", "query", "path")]
        errors.append({
            "field": ".".join(loc),
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(f"Validation error on {request.url.path}: {errors}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Validation error",
            "errors": errors,
        },
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """
    Database failures surface as a dependency outage
    """
    logger.error(f"Database error on {request.url.path}: {exc}")

    return JSONResponse(
        status_code=DependencyError.status_code,
        content={"detail": "Database unavailable"},
    )


async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle anything else
    """
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
