"""
Expiry sweep for OTP codes and sessions.

Run periodically (cron, scheduled job):

    python -m scripts.cleanup_expired
"""

import asyncio
import logging

from trendx.core.database import close_db, get_session_maker
from trendx.core.logging_config import setup_logging
from trendx.services.otp_service import OTPStore
from trendx.services.session_service import SessionStore


logger = logging.getLogger("trendx.scripts.cleanup_expired")


async def cleanup_expired() -> tuple[int, int]:
    async_session = get_session_maker()
    async with async_session() as db:
        otp_deleted = await OTPStore(db).cleanup_expired()
        sessions_deleted = await SessionStore(db).cleanup_expired()

    logger.info(f"Removed {otp_deleted} OTP code(s) and {sessions_deleted} session(s)")
    return otp_deleted, sessions_deleted


async def main() -> None:
    setup_logging()
    try:
        await cleanup_expired()
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
