"""Moderation event store - the append-only audit ledger."""

from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from apps.moderation.kinds import ContentKind, TargetKey
from models.moderation import ModerationEvent, UserModerationEvent


def event_to_dict(event: ModerationEvent) -> dict[str, Any]:
    return {
        "id": event.id,
        "target_kind": event.target_kind,
        "target_id": event.target_id,
        "actor_id": event.actor_id,
        "action": event.action,
        "from_status": event.from_status,
        "to_status": event.to_status,
        "reason_text": event.reason_text,
        "note": event.note,
        "metadata": event.metadata_,
        "created_at": event.created_at,
    }


class ModerationEventStore:
    """Write-once store for content and account moderation events."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, event: ModerationEvent | UserModerationEvent, session: AsyncSession | None = None) -> None:
        if session is not None:
            session.add(event)
            return
        async with self._session_factory() as own_session:
            own_session.add(event)
            await own_session.commit()

    async def get(self, event_id: int) -> ModerationEvent | None:
        async with self._session_factory() as session:
            return await session.get(ModerationEvent, event_id)

    async def count_newer(self, target: TargetKey, event_id: int) -> int:
        """Events recorded on the target after the given one."""
        stmt = (
            select(func.count())
            .select_from(ModerationEvent)
            .where(
                ModerationEvent.target_kind == target.kind.value,
                ModerationEvent.target_id == target.id,
                ModerationEvent.id > event_id,
            )
        )
        async with self._session_factory() as session:
            return int((await session.execute(stmt)).scalar_one())

    async def list_for_target(self, target: TargetKey, page: int, limit: int) -> tuple[list[ModerationEvent], int]:
        conditions = [ModerationEvent.target_kind == target.kind.value, ModerationEvent.target_id == target.id]
        async with self._session_factory() as session:
            total = (
                await session.execute(select(func.count()).select_from(ModerationEvent).where(*conditions))
            ).scalar_one()
            result = await session.execute(
                select(ModerationEvent)
                .where(*conditions)
                .order_by(ModerationEvent.created_at.desc(), ModerationEvent.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            return list(result.scalars().all()), int(total)

    async def count_by_target_since(self, kind: ContentKind, ids: list[int], since: datetime) -> dict[int, int]:
        """Count events per content id created at or after `since`."""
        if not ids:
            return {}
        stmt = (
            select(ModerationEvent.target_id, func.count())
            .where(
                ModerationEvent.target_kind == kind.value,
                ModerationEvent.target_id.in_(ids),
                ModerationEvent.created_at >= since,
            )
            .group_by(ModerationEvent.target_id)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return {int(target_id): int(total) for target_id, total in result.all()}

    async def count_user_actions_since(self, user_ids: list[int], action: str, since: datetime) -> dict[int, int]:
        """Count account-level events of one action per user since `since`."""
        if not user_ids:
            return {}
        stmt = (
            select(UserModerationEvent.user_id, func.count())
            .where(
                UserModerationEvent.user_id.in_(user_ids),
                UserModerationEvent.action == action,
                UserModerationEvent.created_at >= since,
            )
            .group_by(UserModerationEvent.user_id)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return {int(user_id): int(total) for user_id, total in result.all()}
