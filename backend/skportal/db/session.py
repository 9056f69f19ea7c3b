"""
Async engine and session factory.

Services that must commit atomically (registration, status changes) manage
their own transaction boundaries; get_db only guarantees the session is
rolled back and closed when a request fails.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from skportal.core.config import get_settings

settings = get_settings()


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases."""
    if not url.startswith("sqlite"):
        kwargs.setdefault("pool_size", settings.DB_POOL_SIZE)
        kwargs.setdefault("max_overflow", settings.DB_MAX_OVERFLOW)
        kwargs.setdefault("pool_timeout", settings.DB_POOL_TIMEOUT)
        kwargs.setdefault("pool_recycle", settings.DB_POOL_RECYCLE)
        kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, echo=settings.DEBUG, **kwargs)


engine = build_engine(settings.DATABASE_URL)
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
