"""Database engine and session helpers for the roadmap store."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from learnpath.core.config import get_settings
from learnpath.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
)

# expire_on_commit=False: rows are converted to schemas after commit
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    """Create the roadmaps table if it does not exist yet."""
    import learnpath.models  # noqa: F401

    async with engine.begin() as conn:
        logger.info("Creating database tables", url=settings.DATABASE_URL)
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    logger.info("Closing database connections")
    await engine.dispose()


@asynccontextmanager
async def get_db_session(
    factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
) -> AsyncGenerator[AsyncSession, None]:
    """Session that commits on success and rolls back on any error.

    ``factory`` lets the store and tests run against another engine.
    """
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
