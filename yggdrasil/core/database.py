# yggdrasil/core/database.py
"""Database connection and session management using SQLAlchemy."""
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from sqlalchemy import text
import logging

from .config import settings

logger = logging.getLogger(__name__)


def _engine_options(database_url: str) -> dict:
    # SQLite (tests, local runs) does not take server-side pool or connect settings
    if database_url.startswith("sqlite"):
        return {}
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 60,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
        "connect_args": {
            "command_timeout": 300,
            "server_settings": {
                "application_name": "yggdrasil_planning",
                "statement_timeout": "300s",
                "idle_in_transaction_session_timeout": "60s",
            }
        },
    }


engine = create_async_engine(
    settings.database_url,
    echo=(settings.environment == 'development'),
    **_engine_options(settings.database_url)
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for API requests with proper error handling"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error(f"Database session error: {e}")
            await session.rollback()
            raise
        finally:
            await session.close()


def create_worker_engine() -> AsyncEngine:
    """Engine for Celery tasks.

    Each task runs in its own event loop (``asyncio.run``), so pooled
    connections cannot be shared between runs; NullPool opens a fresh
    connection per session instead. Dispose it before the loop closes.
    """
    return create_async_engine(settings.database_url, poolclass=NullPool)


def create_worker_sessionmaker(worker_engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        worker_engine,
        expire_on_commit=False,
        class_=AsyncSession,
        autoflush=False,
    )


async def init_models():
    """Create all tables that do not exist yet"""
    from ..models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def health_check_db() -> bool:
    """Fast health check with timeout handling"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def close_db_connections():
    """Properly close all database connections"""
    await engine.dispose()
    logger.info("Database connections closed")
