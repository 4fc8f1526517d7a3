"""Database configuration and session management.

Provides async SQLAlchemy engine and session factory.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from catalog_migrator.infrastructure.config import settings

# Base class for models
Base = declarative_base()

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Get the async engine, creating it on first use.

    Returns:
        AsyncEngine bound to the configured database URL.
    """
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory for the configured engine.

    Returns:
        Session factory producing AsyncSession instances.
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def create_tables(engine: AsyncEngine | None = None) -> None:
    """Create catalog tables if they don't exist.

    Args:
        engine: Engine to use (defaults to the configured engine).
    """
    # Models must be imported so their tables are registered on Base.metadata
    from catalog_migrator.infrastructure import models  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
