"""
Application Configuration

Uses Pydantic Settings for environment variable management with validation.
"""

import re
from functools import lru_cache
from typing import List
from urllib.parse import unquote

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str
    DATABASE_SSL: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30  # seconds

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,https://trendburst.onrender.com"

    # Sessions
    SESSION_COOKIE_NAME: str = "trendx_session"
    SESSION_EXPIRE_MINUTES: int = 1440  # 1 day

    # Passwords
    BCRYPT_ROUNDS: int = 10

    # OTP
    OTP_LENGTH: int = 6
    OTP_EXPIRE_MINUTES: int = 10
    OTP_RESEND_COOLDOWN_SECONDS: int = 60
    OTP_MAX_ATTEMPTS: int = 5  # wrong guesses before the code is burned

    # Email (SMTP)
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True

    # Email (Brevo HTTP API, preferred when set)
    BREVO_API_KEY: str = ""

    EMAIL_FROM_ADDRESS: str = "noreply@trendx.social"
    EMAIL_FROM_NAME: str = "Trendx"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def normalize_database_url(cls, value: str) -> str:
        """
        Repair connection strings pasted straight from a provider dashboard.

        Handles URL-encoded values, a leading ``psql '...'`` wrapper, and the
        bare ``postgres://`` scheme, which is mapped to the asyncpg driver.
        """
        url = unquote(value.strip())
        if url.startswith("psql"):
            url = re.sub(r"^psql\s*'?", "", url).rstrip("'").strip()
        if url.startswith("postgres://"):
            url = "postgresql+asyncpg://" + url[len("postgres://"):]
        elif url.startswith("postgresql://"):
            url = "postgresql+asyncpg://" + url[len("postgresql://"):]
        return url

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are only loaded once.
    """
    return Settings()


# Global settings instance
settings = get_settings()
