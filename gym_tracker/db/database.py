"""Database connection and session management."""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from gym_tracker.config.settings import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def build_engine() -> AsyncEngine:
    """Create the database engine shared by every tool call."""
    connect_args = {}
    if settings.database_url.startswith("postgresql+asyncpg"):
        connect_args["server_settings"] = {
            "statement_timeout": str(settings.statement_timeout_ms),
            "application_name": settings.app_name,
        }
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


engine = build_engine()

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """
    Fresh session for one tool call.

    The connection is checked out lazily and always returned to the pool;
    an open transaction left behind by a failed call is rolled back on close.
    """
    session = async_session_maker()
    try:
        yield session
    finally:
        await session.close()


async def init_db():
    """Create all tables (development and test databases; production uses managed DDL)."""
    # Import models so every table is registered on Base.metadata
    import gym_tracker.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def check_database_health() -> bool:
    try:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.scalar() == 1
    except Exception as e:
        logger.debug(f"Database health check failed: {e}")
        return False


async def close_all_engines():
    """Dispose the engine and release pooled connections."""
    await engine.dispose()
