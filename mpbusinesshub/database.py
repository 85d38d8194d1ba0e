"""
Async engine and sessions for the directory database.

PostgreSQL runs through asyncpg in production. Development and the test
suite use SQLite through aiosqlite.
"""

import os
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from mpbusinesshub.config.settings import get_settings
from mpbusinesshub.models.base import Base

settings = get_settings()


def async_database_url(url: str) -> str:
    """Point plain ``postgresql://`` URLs at the asyncpg driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


engine = create_async_engine(
    async_database_url(settings.database_url),
    echo=settings.sql_echo,
    pool_pre_ping=True,
    poolclass=NullPool if os.getenv("ENV") == "test" else None,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session. Uncommitted work is rolled back when a handler raises."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Create any missing tables. Existing tables and rows are left alone."""
    # Registers every model with Base.metadata
    import mpbusinesshub.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
