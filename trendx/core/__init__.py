"""
Trendx Backend - Core Module

This module contains configuration, database setup, security utilities,
and the error taxonomy.
"""

from trendx.core.config import get_settings, settings
from trendx.core.database import Base, get_db, get_engine

__all__ = ["settings", "get_settings", "Base", "get_db", "get_engine"]
