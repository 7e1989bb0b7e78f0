"""Create all tables for the configured database.

Run with ``python -m app.db.models.init_db``.
"""
import asyncio

from loguru import logger

from app.db.models.database import Base
from app.db.session import engine


async def init_models(bind=None) -> None:
    target = bind or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def _main() -> None:
    await init_models()
    await engine.dispose()
    logger.success("🎉 Database schema created")


if __name__ == "__main__":
    asyncio.run(_main())
