"""
Create all tables for the configured database.

  python -m school_admin.db.init_db
"""
import asyncio
import logging

from school_admin.core import models  # noqa: F401  (registers every table on Base.metadata)
from school_admin.core.config import settings
from school_admin.core.logging import configure_logging
from school_admin.db.session import Base, engine

logger = logging.getLogger(__name__)


async def init_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Created %d tables", len(Base.metadata.tables))


async def main() -> None:
    configure_logging(settings.log_level)
    try:
        await init_db()
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
