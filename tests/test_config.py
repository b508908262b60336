"""
Configuration Unit Tests

Tests for DATABASE_URL normalization and derived settings.
"""

import pytest

from trendx.core.config import Settings


class TestDatabaseUrl:
    """Tests for the DATABASE_URL normalizer."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("postgres://u:p@db.test:5432/trendx", "postgresql+asyncpg://u:p@db.test:5432/trendx"),
            ("postgresql://u:p@db.test/trendx", "postgresql+asyncpg://u:p@db.test/trendx"),
            ("postgresql+asyncpg://u:p@db.test/trendx", "postgresql+asyncpg://u:p@db.test/trendx"),
            (
                "psql 'postgresql://u:p@db.test/trendx?sslmode=require'",
                "postgresql+asyncpg://u:p@db.test/trendx?sslmode=require",
            ),
            ("postgresql%3A%2F%2Fu%3Ap%40db.test%2Ftrendx", "postgresql+asyncpg://u:p@db.test/trendx"),
            ("  sqlite+aiosqlite:///./trendx.db  ", "sqlite+aiosqlite:///./trendx.db"),
        ],
    )
    def test_normalization(self, raw, expected):
        assert Settings(DATABASE_URL=raw).DATABASE_URL == expected


class TestDerivedSettings:
    """Tests for computed properties."""

    def test_cors_origins_list(self):
        config = Settings(
            DATABASE_URL="sqlite+aiosqlite://",
            CORS_ORIGINS="http://localhost:5173, https://trendx.app ,",
        )

        assert config.cors_origins_list == ["http://localhost:5173", "https://trendx.app"]

    @pytest.mark.parametrize(
        "environment, production",
        [
            ("production", True),
            ("development", False),
            ("test", False),
        ],
    )
    def test_production_flag(self, environment, production):
        config = Settings(DATABASE_URL="sqlite+aiosqlite://", ENVIRONMENT=environment)

        assert config.is_production is production

    def test_otp_defaults(self):
        config = Settings(DATABASE_URL="sqlite+aiosqlite://")

        assert config.OTP_LENGTH == 6
        assert config.OTP_EXPIRE_MINUTES == 10
        assert config.OTP_MAX_ATTEMPTS == 5
        assert config.SESSION_COOKIE_NAME == "trendx_session"
