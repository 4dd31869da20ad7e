from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import BigInteger, Integer
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from core.config import settings

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _engine_kwargs(database_url: str, echo: bool) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        kwargs.update(pool_size=10, max_overflow=20)
    return kwargs


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the given URL."""
    return create_async_engine(database_url, **_engine_kwargs(database_url, echo))


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to an engine."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


# Create async engine
engine = create_engine(settings.database_url, echo=settings.is_development)

# Create async session factory
AsyncSessionLocal = create_session_factory(engine)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
