"""Content reports filed by users against moderatable content."""

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, BigIntPK, utcnow


class ContentReport(Base):
    """One reporter's report about one target. Re-reporting updates this row."""

    __tablename__ = "content_reports"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    reporter_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    target_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    target_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reason_code: Mapped[str] = mapped_column(String(24), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="open")  # open|reviewed|dismissed
    reviewed_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    resolution_action: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "reason_code IN ('spam','abuse','misinformation','sexual','violence','hate','scam','copyright','other')",
            name="chk_content_report_reason",
        ),
        CheckConstraint("status IN ('open','reviewed','dismissed')", name="chk_content_report_status"),
        # At most one report per reporter per target
        UniqueConstraint("reporter_id", "target_kind", "target_id", name="uq_content_reports_reporter_target"),
        # Open reports by target, the aggregation hot path
        Index("idx_content_reports_target_status", "target_kind", "target_id", "status"),
        Index("idx_content_reports_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ContentReport(id={self.id}, reporter={self.reporter_id}, "
            f"target={self.target_kind}:{self.target_id}, reason={self.reason_code}, status={self.status})>"
        )
