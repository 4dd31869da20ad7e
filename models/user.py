from datetime import datetime

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, BigIntPK, utcnow


class User(Base):
    """Platform account, with the operational controls applied to creators."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="user")  # user|creator|admin

    # Creator operational controls
    creation_blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    creation_blocked_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    publishing_blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    publishing_blocked_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    cooldown_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    controls_updated_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    controls_updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('user','creator','admin')", name="chk_user_role"),
        Index("idx_users_role_publishing_blocked", "role", "publishing_blocked"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username}, role={self.role})>"
