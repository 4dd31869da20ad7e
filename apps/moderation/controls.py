"""Creator operational controls: cooldowns and creation/publishing blocks."""

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from apps.moderation.errors import ConflictError, InternalError, NotFoundError, ValidationError
from apps.moderation.events import ModerationEventStore
from apps.moderation.kinds import parse_id
from apps.moderation.users import UserRepository
from core.db import utcnow
from core.metrics import creator_controls_total
from models.moderation import UserModerationEvent
from models.user import User

logger = logging.getLogger(__name__)

CONTROL_ACTIONS = (
    "set_cooldown",
    "clear_cooldown",
    "block_creation",
    "unblock_creation",
    "block_publishing",
    "unblock_publishing",
    "suspend_creator_ops",
    "restore_creator_ops",
)
CREATOR_CONTROL_EVENT = "creator_control"
MAX_COOLDOWN_HOURS = 24 * 30
MAX_REASON_LENGTH = 500


def active_control_flags(user: User, now: datetime) -> list[str]:
    """Control flags currently in force, in a fixed order."""
    flags = []
    if user.creation_blocked:
        flags.append("creation_blocked")
    if user.publishing_blocked:
        flags.append("publishing_blocked")
    if user.cooldown_until is not None and user.cooldown_until > now:
        flags.append("cooldown_active")
    return flags


def controls_snapshot(user: User) -> dict[str, Any]:
    return {
        "creation_blocked": user.creation_blocked,
        "creation_blocked_reason": user.creation_blocked_reason,
        "publishing_blocked": user.publishing_blocked,
        "publishing_blocked_reason": user.publishing_blocked_reason,
        "cooldown_until": user.cooldown_until.isoformat() if user.cooldown_until else None,
        "updated_by": user.controls_updated_by,
        "updated_at": user.controls_updated_at.isoformat() if user.controls_updated_at else None,
    }


def _apply(user: User, action: str, reason: str, cooldown_hours: int | None, now: datetime) -> None:
    if action == "set_cooldown":
        if not cooldown_hours or cooldown_hours <= 0:
            raise ValidationError("cooldown_hours is required for set_cooldown")
        user.cooldown_until = now + timedelta(hours=min(cooldown_hours, MAX_COOLDOWN_HOURS))
    elif action == "clear_cooldown":
        user.cooldown_until = None
    elif action == "block_creation":
        user.creation_blocked = True
        user.creation_blocked_reason = reason
    elif action == "unblock_creation":
        user.creation_blocked = False
        user.creation_blocked_reason = None
    elif action == "block_publishing":
        user.publishing_blocked = True
        user.publishing_blocked_reason = reason
    elif action == "unblock_publishing":
        user.publishing_blocked = False
        user.publishing_blocked_reason = None
    elif action == "suspend_creator_ops":
        user.creation_blocked = True
        user.creation_blocked_reason = reason
        user.publishing_blocked = True
        user.publishing_blocked_reason = reason
    elif action == "restore_creator_ops":
        user.creation_blocked = False
        user.creation_blocked_reason = None
        user.publishing_blocked = False
        user.publishing_blocked_reason = None
        user.cooldown_until = None


class CreatorControlService:
    """Applies account-level controls to creators and records them in the user ledger."""

    def __init__(
        self,
        users: UserRepository,
        events: ModerationEventStore,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self.users = users
        self.events = events
        self._session_factory = session_factory

    async def apply_creator_control(
        self,
        actor_id: Any,
        creator_id: Any,
        action: str,
        reason_text: str,
        note: str | None = None,
        cooldown_hours: int | None = None,
    ) -> dict[str, Any]:
        """
        Apply one control action to a creator account.

        Raises:
            ValidationError: Bad input, or an admin acting on their own account
            NotFoundError: Creator account does not exist
            ConflictError: Target account is not a creator
            InternalError: The write failed and was rolled back
        """
        actor = parse_id(actor_id, "actor_id")
        target_id = parse_id(creator_id, "creator_id")
        if action not in CONTROL_ACTIONS:
            raise ValidationError("Invalid action", details={"action": action, "allowed": list(CONTROL_ACTIONS)})

        reason = (reason_text or "").strip()
        if not reason:
            raise ValidationError("reason_text is required")
        if len(reason) > MAX_REASON_LENGTH:
            raise ValidationError(f"reason_text must be at most {MAX_REASON_LENGTH} characters")
        note = note.strip() if note and note.strip() else None

        if actor == target_id:
            raise ValidationError("You cannot change operational controls on your own account")

        user = await self.users.get(target_id)
        if user is None:
            raise NotFoundError("Creator not found", details={"creator_id": target_id})
        if user.role != "creator":
            raise ConflictError("Operational controls apply only to creators")

        now = utcnow()
        before = controls_snapshot(user)
        _apply(user, action, reason, cooldown_hours, now)
        user.controls_updated_by = actor
        user.controls_updated_at = now
        after = controls_snapshot(user)

        async with self._session_factory() as session:
            try:
                await self.users.save(user, session=session)
                await self.events.append(
                    UserModerationEvent(
                        user_id=target_id,
                        actor_id=actor,
                        action=CREATOR_CONTROL_EVENT,
                        reason_text=reason,
                        note=note,
                        metadata_={
                            "control_action": action,
                            "cooldown_hours": cooldown_hours,
                            "before": before,
                            "after": after,
                        },
                    ),
                    session=session,
                )
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error(f"Creator control write rolled back: creator={target_id}, action={action}, error={exc}")
                raise InternalError("Creator control could not be saved", details={"creator_id": target_id}) from exc

        creator_controls_total.labels(action=action).inc()
        logger.info(f"Creator control applied: actor={actor}, creator={target_id}, action={action}")

        return {
            "action": action,
            "creator_id": target_id,
            "creator_controls": after,
            "active_flags": active_control_flags(user, now),
        }
