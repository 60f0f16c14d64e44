"""Database setup with async SQLAlchemy."""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase
from freakslots.core.config import settings
import logging
import re
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


# Mask password in database URL for logging
def mask_db_url(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r'://([^:]+):([^@]+)@', r'://\1:****@', url)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    Pool sizing only applies to server databases; SQLite uses the
    dialect's default pool.
    """
    url = database_url or settings.database_url
    logger.info(f"Connecting to database: {mask_db_url(url)}")

    engine_args = {
        "echo": settings.log_level == "DEBUG",  # Log all SQL if DEBUG
        "pool_pre_ping": True,  # Verify connections before using
    }

    if url.startswith("sqlite"):
        database = make_url(url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
    else:
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

    return create_async_engine(url, **engine_args)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


async def init_db(engine: AsyncEngine):
    """Initialize database tables."""
    # Register all models with Base.metadata
    import freakslots.models  # noqa: F401

    logger.info("Initializing database tables...")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✓ Database tables initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database tables: {str(e)}", exc_info=True)
        raise
