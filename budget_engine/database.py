"""Database connection and session management."""

from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from budget_engine.config import settings
from budget_engine.logging_config import get_logger
from budget_engine.models.base import Base

logger = get_logger(__name__)


def create_engine_for_url(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine, enabling SAVEPOINT support on SQLite.

    pysqlite manages transactions itself and breaks SAVEPOINT, so for SQLite
    the driver's handling is switched off and BEGIN is emitted explicitly.

    Args:
        url: Async database URL
        **kwargs: Extra ``create_async_engine`` arguments

    Returns:
        AsyncEngine: Configured engine
    """
    engine = create_async_engine(url, future=True, **kwargs)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _sqlite_on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _sqlite_on_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


def _engine_options() -> dict:
    if settings.async_database_url.startswith("sqlite"):
        return {"echo": settings.debug}
    return {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_pre_ping": True,
        "echo": settings.debug,
    }


# Create async engine
async_engine = create_engine_for_url(settings.async_database_url, **_engine_options())

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions.

    Yields:
        AsyncSession: Database session
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error("Database session error", error=str(e), exc_info=True)
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Initialize database tables."""
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created successfully")


async def close_db() -> None:
    """Close database connections."""
    await async_engine.dispose()
    logger.info("Database connections closed")
