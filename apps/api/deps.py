"""FastAPI dependencies."""

from collections.abc import AsyncGenerator

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession

from apps.moderation.services import ModerationServices, build_moderation_services
from core.config import settings
from core.db import AsyncSessionLocal
from core.db import get_db as _get_db
from core.redis import get_redis as _get_redis

_services: ModerationServices | None = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async for session in _get_db():
        yield session


async def get_redis_client() -> redis.Redis:
    """Get Redis client dependency."""
    return await _get_redis()


def get_services() -> ModerationServices:
    """Moderation services, built once per process with the policy read from settings."""
    global _services
    if _services is None:
        _services = build_moderation_services(AsyncSessionLocal, settings.moderation_policy())
    return _services
