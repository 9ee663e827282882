"""SQLAlchemy async database setup."""

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from summaryscribe.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# Create async engine with connection pooling
engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_size=5,
    max_overflow=10,
    pool_pre_ping=True,
)

# Session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def best_effort(
    session: AsyncSession,
    label: str,
    operation: Callable[[], Awaitable[object]],
) -> bool:
    """Run a side-effect write inside a SAVEPOINT; log and swallow failures.

    Used for audit rows (post/push/export/notification records) that must
    never replace the primary result of a request.
    """
    try:
        async with session.begin_nested():
            await operation()
        return True
    except Exception as e:
        logger.warning(f"Failed to {label}: {e}")
        return False


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for FastAPI to get database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
