"""Database setup with async SQLAlchemy (SQLite or PostgreSQL)."""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from wishwatch.core.config import settings
import logging
import re
from typing import AsyncGenerator

logger = logging.getLogger(__name__)

# Mask password in database URL for logging
def mask_db_url(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r'://([^:]+):([^@]+)@', r'://\1:****@', url)

logger.info(f"Connecting to database: {mask_db_url(settings.database_url)}")

engine_args = {
    "echo": settings.log_level == "DEBUG",  # Log all SQL if DEBUG
    "pool_pre_ping": True,  # Verify connections before using
}

if not settings.database_url.startswith("sqlite"):
    engine_args.update({
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 3600,
    })
    logger.info(
        "Configuring connection pool: pool_size=10, max_overflow=20, "
        "pool_timeout=30s, pool_recycle=3600s"
    )

engine = create_async_engine(
    settings.database_url,
    **engine_args
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting database sessions.

    NOTE: This dependency does NOT auto-commit. Services must explicitly
    call await session.commit() when needed.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session rolled back due to error: {str(e)}", exc_info=True)
            raise


async def init_db():
    """Initialize database tables."""
    logger.info("Initializing database tables...")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✓ Database tables initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database tables: {str(e)}", exc_info=True)
        logger.debug(f"Database URL (masked): {mask_db_url(settings.database_url)}")
        raise
