"""Append-only moderation ledgers for content and creator accounts."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, CheckConstraint, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, BigIntPK, utcnow


class ModerationEvent(Base):
    """One applied hide/unhide/restrict action. Never updated or deleted."""

    __tablename__ = "moderation_events"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    target_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    target_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(16), nullable=False)  # hide|unhide|restrict
    from_status: Mapped[str] = mapped_column(String(16), nullable=False)
    to_status: Mapped[str] = mapped_column(String(16), nullable=False)
    reason_text: Mapped[str] = mapped_column(String(500), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("action IN ('hide','unhide','restrict')", name="chk_moderation_event_action"),
        Index("idx_moderation_events_target_created", "target_kind", "target_id", "created_at"),
        Index("idx_moderation_events_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ModerationEvent(id={self.id}, target={self.target_kind}:{self.target_id}, action={self.action})>"


class UserModerationEvent(Base):
    """Account-level moderation action history (creator operational controls)."""

    __tablename__ = "user_moderation_events"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(24), nullable=False)  # creator_control
    reason_text: Mapped[str] = mapped_column(String(500), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_user_moderation_events_user_created", "user_id", "action", "created_at"),)

    def __repr__(self) -> str:
        return f"<UserModerationEvent(id={self.id}, user={self.user_id}, action={self.action})>"
