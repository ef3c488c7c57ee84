"""Database session management.

Async engine and session factory for the execution log store, using
SQLAlchemy 2.0 async patterns.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from flowengine.core.config import settings
from flowengine.models.base import Base

engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    echo=settings.DATABASE_ECHO,
)

# Create async session factory
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables that do not exist yet."""
    # Import models so their tables are registered on the metadata
    import flowengine.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()


__all__ = [
    "async_session",
    "close_db",
    "engine",
    "init_db",
]
