"""
Database engine and session management with SQLAlchemy async
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from core.config import Settings, settings
import logging

logger = logging.getLogger(__name__)


def create_engine_from_settings(config: Settings = settings) -> AsyncEngine:
    """
    Create the bounded async connection pool.

    Every batch upsert holds one pooled connection for its whole transaction,
    so pool size caps the number of concurrent batches. On PostgreSQL a
    server-side statement timeout is applied to each connection.
    """
    connect_args = {}
    if config.DATABASE_URL.startswith("postgresql+asyncpg"):
        connect_args["server_settings"] = {
            "statement_timeout": str(config.DB_STATEMENT_TIMEOUT_MS),
        }

    engine = create_async_engine(
        config.DATABASE_URL,
        echo=False,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_timeout=config.DB_POOL_TIMEOUT,
        pool_pre_ping=True,
        connect_args=connect_args,
    )
    logger.info(
        f"Database engine created (pool_size={config.DB_POOL_SIZE}, "
        f"max_overflow={config.DB_MAX_OVERFLOW})"
    )
    return engine


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to an engine"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
