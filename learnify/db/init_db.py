"""
Create all tables on the configured database.

    python -m learnify.db.init_db
"""

import asyncio

from sqlalchemy.ext.asyncio import AsyncEngine

# Register every model on Base.metadata
from learnify.auth import models as auth_models  # noqa: F401
from learnify.core import models as core_models  # noqa: F401
from learnify.core.config import settings
from learnify.core.logging import get_logger, setup_logging
from learnify.db.session import Base, engine

logger = get_logger(__name__)


async def create_all(bind: AsyncEngine = engine) -> None:
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("tables_created", tables=sorted(Base.metadata.tables))


async def drop_all(bind: AsyncEngine = engine) -> None:
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


def main() -> None:
    setup_logging(settings)
    asyncio.run(create_all())


if __name__ == "__main__":
    main()
