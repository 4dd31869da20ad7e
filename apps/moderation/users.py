from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.user import User


class UserRepository:
    """Account lookups needed by trust scoring and creator controls."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, user_id: int) -> User | None:
        async with self._session_factory() as session:
            return await session.get(User, user_id)

    async def find_creators(self, user_ids: Iterable[int]) -> list[User]:
        ids = list(user_ids)
        if not ids:
            return []
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.id.in_(ids), User.role == "creator"))
            return list(result.scalars().all())

    async def save(self, user: User, session: AsyncSession | None = None) -> None:
        if session is not None:
            await session.merge(user)
            return
        async with self._session_factory() as own_session:
            await own_session.merge(user)
            await own_session.commit()
