"""
Create the database tables for a fresh environment.

    python -m scripts.init_db
"""

import asyncio
import logging

from trendx.core.database import close_db, init_db
from trendx.core.logging_config import setup_logging

import trendx.models  # noqa: F401  (registers every table on Base.metadata)


logger = logging.getLogger("trendx.scripts.init_db")


async def main() -> None:
    setup_logging()
    try:
        await init_db()
        logger.info("Tables created")
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
