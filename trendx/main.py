"""
Trendx Backend - FastAPI Application

Main entry point for the application.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from trendx.core.config import settings
from trendx.core.database import close_db
from trendx.core.errors import register_exception_handlers
from trendx.core.http_client import close_http_client
from trendx.core.logging_config import setup_logging
from trendx.api.v1 import router as api_v1_router
from trendx.services.email_service import build_email_dispatcher


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events. The email dispatch policy is chosen
    here, once, from ENVIRONMENT.
    """
    # Startup
    setup_logging()
    logger.info(f"Starting Trendx Backend ({settings.ENVIRONMENT})")
    app.state.email_dispatcher = build_email_dispatcher(settings)
    yield
    # Shutdown
    logger.info("Shutting down Trendx Backend")
    await close_http_client()
    await close_db()


# Create FastAPI application
app = FastAPI(
    title="Trendx Backend",
    description="Trendx accounts: registration, email OTP verification and session auth.",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS; credentials are needed for the session cookie
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routers
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check() -> dict:
    """
    Health check endpoint.

    Returns:
        dict: Health status and environment info.
    """
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": "0.1.0",
    }


@app.get("/", tags=["Root"])
async def root() -> dict:
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links.
    """
    return {
        "message": "Welcome to Trendx Backend API",
        "docs": "/docs",
        "health": "/health",
    }
