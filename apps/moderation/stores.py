"""Per-kind content store adapters.

Each adapter exposes the same four operations over one content table.
Every read opens its own session, so concurrent fan-out branches never
share a session. Writes may join a caller's session instead.
"""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql import Select

from apps.moderation.kinds import ALL_KINDS, KIND_MODELS, OWNER_FIELD, TEXT_FIELD, ContentKind, is_base_kind


@dataclass(frozen=True)
class ContentQuery:
    """Filters a content store can apply natively."""

    moderation_status: str | None = None
    publish_status: str | None = None
    owner_ids: Sequence[int] | None = None
    search: str | None = None
    ids: Sequence[int] | None = None


class ContentStore(Protocol):
    kind: ContentKind

    async def find_by_id(self, content_id: int) -> Any | None: ...

    async def find(self, query: ContentQuery) -> list[Any]: ...

    async def count_documents(self, query: ContentQuery) -> int: ...

    async def save(self, content: Any, session: AsyncSession | None = None) -> None: ...


def owner_id_of(kind: ContentKind, content: Any) -> int | None:
    return getattr(content, OWNER_FIELD[kind], None)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqlContentStore:
    """Content store backed by one SQLAlchemy model."""

    def __init__(self, kind: ContentKind, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.kind = kind
        self.model = KIND_MODELS[kind]
        self._session_factory = session_factory

    def _apply(self, stmt: Select[Any], query: ContentQuery) -> Select[Any]:
        model = self.model
        if query.ids is not None:
            stmt = stmt.where(model.id.in_(list(query.ids)))
        if query.moderation_status:
            stmt = stmt.where(model.moderation_status == query.moderation_status)
        # Comments and reviews have no publish lifecycle
        if query.publish_status and is_base_kind(self.kind):
            stmt = stmt.where(model.status == query.publish_status)
        if query.owner_ids is not None:
            stmt = stmt.where(getattr(model, OWNER_FIELD[self.kind]).in_(list(query.owner_ids)))
        if query.search and query.search.strip():
            pattern = f"%{_escape_like(query.search.strip().lower())}%"
            if is_base_kind(self.kind):
                columns = [model.title, model.description, model.slug]
            else:
                columns = [getattr(model, TEXT_FIELD[self.kind])]
            stmt = stmt.where(or_(*(func.lower(column).like(pattern, escape="\\") for column in columns)))
        return stmt

    async def find_by_id(self, content_id: int) -> Any | None:
        async with self._session_factory() as session:
            return await session.get(self.model, content_id)

    async def find(self, query: ContentQuery) -> list[Any]:
        stmt = self._apply(select(self.model), query).order_by(self.model.updated_at.desc(), self.model.id.desc())
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count_documents(self, query: ContentQuery) -> int:
        stmt = self._apply(select(func.count()).select_from(self.model), query)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def save(self, content: Any, session: AsyncSession | None = None) -> None:
        """Persist content. With a caller session the write joins its transaction uncommitted."""
        if session is not None:
            await session.merge(content)
            return
        async with self._session_factory() as own_session:
            await own_session.merge(content)
            await own_session.commit()


@dataclass
class ContentStoreRegistry:
    """Explicit kind -> adapter dispatch table, registered once at startup."""

    stores: dict[ContentKind, ContentStore] = field(default_factory=dict)

    def register(self, store: ContentStore) -> None:
        self.stores[store.kind] = store

    def get(self, kind: ContentKind) -> ContentStore:
        return self.stores[kind]

    def __iter__(self) -> Iterator[ContentStore]:
        return iter(self.stores.values())


def build_content_stores(session_factory: async_sessionmaker[AsyncSession]) -> ContentStoreRegistry:
    registry = ContentStoreRegistry()
    for kind in ALL_KINDS:
        registry.register(SqlContentStore(kind, session_factory))
    return registry
