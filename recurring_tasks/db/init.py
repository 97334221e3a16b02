"""Initialize database tables."""
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import SQLModel

from recurring_tasks.db.config import engine as default_engine
from recurring_tasks.models.task import Task  # noqa: F401  registers the table

logger = logging.getLogger(__name__)


async def init_db(engine: AsyncEngine = default_engine) -> None:
    """Create all tables in the database."""
    logger.info("Creating all tables...")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Tables created successfully.")


if __name__ == "__main__":
    asyncio.run(init_db())
