"""
Logging Configuration

Console logging for the API process, configured once at startup.
"""

import logging.config

from trendx.core.config import settings


def build_logging_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "verbose": {
                "format": "{levelname} {asctime} {name} {process:d} {message}",
                "style": "{",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "verbose",
            },
        },
        "root": {
            "handlers": ["console"],
            "level": level,
        },
        "loggers": {
            "trendx": {
                "handlers": ["console"],
                "level": level,
                "propagate": False,
            },
            # Engine echo is noisy; keep it to warnings unless asked
            "sqlalchemy.engine": {
                "level": "WARNING",
            },
        },
    }


def setup_logging(level: str | None = None) -> None:
    """Apply the logging config. Safe to call more than once."""
    logging.config.dictConfig(build_logging_config((level or settings.LOG_LEVEL).upper()))
