"""Database configuration for the recurring task engine."""
import logging
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from recurring_tasks.config import DATABASE_URL, SQL_ECHO, SQLITE_BUSY_TIMEOUT_MS

logger = logging.getLogger(__name__)


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """
    Let SQLAlchemy own BEGIN for SQLite connections.

    The sqlite3/aiosqlite drivers manage transactions themselves, which breaks
    SAVEPOINT handling; occurrence inserts rely on savepoints to survive
    unique-constraint conflicts.

    Transactions start with BEGIN IMMEDIATE. A deferred BEGIN lets two
    sessions both read, after which the second writer fails with
    "database is locked" instead of waiting for the first to commit.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str = DATABASE_URL, **kwargs) -> AsyncEngine:
    """Create the async engine, applying SQLite-specific setup where needed."""
    engine = create_async_engine(database_url, echo=SQL_ECHO, **kwargs)
    if database_url.startswith("sqlite"):
        logger.info(f"Using SQLite database: {database_url}")
        enable_sqlite_savepoints(engine)
    else:
        logger.info("Using PostgreSQL database")
    return engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    # Repositories hand out detached rows, so nothing may expire on commit
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine: AsyncEngine = build_engine()
async_session_factory = build_session_factory(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting database sessions."""
    async with async_session_factory() as session:
        yield session
