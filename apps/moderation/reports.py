"""Report repository and the report creation flow."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from apps.moderation.errors import ConflictError, NotFoundError, ValidationError
from apps.moderation.kinds import TargetKey, parse_id, parse_reason_code, parse_report_status, parse_target
from apps.moderation.pagination import Page, normalize_page
from apps.moderation.stores import ContentStoreRegistry, owner_id_of
from core.db import utcnow
from models.report import ContentReport

logger = logging.getLogger(__name__)

MAX_NOTE_LENGTH = 1000


@dataclass(frozen=True)
class OpenReportRow:
    """One open report, as consumed by the signal aggregator."""

    target: TargetKey
    reporter_id: int
    reason_code: str
    created_at: datetime


def report_to_dict(report: ContentReport) -> dict:
    return {
        "id": report.id,
        "reporter_id": report.reporter_id,
        "target_kind": report.target_kind,
        "target_id": report.target_id,
        "reason_code": report.reason_code,
        "note": report.note,
        "status": report.status,
        "reviewed_by": report.reviewed_by,
        "reviewed_at": report.reviewed_at,
        "resolution_action": report.resolution_action,
        "created_at": report.created_at,
        "updated_at": report.updated_at,
    }


class ReportRepository:
    """CRUD and grouping over content reports."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def upsert_by_reporter_and_target(
        self,
        reporter_id: int,
        target: TargetKey,
        reason_code: str,
        note: str | None,
    ) -> tuple[ContentReport, bool]:
        """
        Create a report or reset the reporter's existing one on this target.

        Returns:
            (report, created)
        """
        async with self._session_factory() as session:
            result = await session.execute(
                select(ContentReport).where(
                    ContentReport.reporter_id == reporter_id,
                    ContentReport.target_kind == target.kind.value,
                    ContentReport.target_id == target.id,
                )
            )
            report = result.scalar_one_or_none()
            created = report is None

            if report is None:
                report = ContentReport(
                    reporter_id=reporter_id,
                    target_kind=target.kind.value,
                    target_id=target.id,
                    reason_code=reason_code,
                    note=note,
                    status="open",
                )
                session.add(report)
            else:
                report.reason_code = reason_code
                report.note = note
                report.status = "open"
                report.reviewed_by = None
                report.reviewed_at = None
                report.resolution_action = None

            await session.commit()
            await session.refresh(report)
            return report, created

    async def find_open_grouped_by_target(self, targets: Iterable[TargetKey]) -> list[OpenReportRow]:
        """Fetch every open report on the given targets in one query."""
        targets = list(targets)
        if not targets:
            return []

        by_kind: dict[str, list[int]] = {}
        for target in targets:
            by_kind.setdefault(target.kind.value, []).append(target.id)

        stmt = select(
            ContentReport.target_kind,
            ContentReport.target_id,
            ContentReport.reporter_id,
            ContentReport.reason_code,
            ContentReport.created_at,
        ).where(
            ContentReport.status == "open",
            or_(
                *(
                    and_(ContentReport.target_kind == kind, ContentReport.target_id.in_(ids))
                    for kind, ids in by_kind.items()
                )
            ),
        )

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        return [
            OpenReportRow(
                target=parse_target(row.target_kind, row.target_id),
                reporter_id=row.reporter_id,
                reason_code=row.reason_code,
                created_at=row.created_at,
            )
            for row in rows
        ]

    async def mark_open_resolved(
        self, target: TargetKey, reviewer_id: int, action: str, session: AsyncSession | None = None
    ) -> int:
        """
        Move every open report on the target to reviewed. Returns the number of rows changed.

        When a session is passed the update joins the caller's transaction and is not committed here.
        """
        now = utcnow()
        stmt = (
            update(ContentReport)
            .where(
                ContentReport.target_kind == target.kind.value,
                ContentReport.target_id == target.id,
                ContentReport.status == "open",
            )
            .values(status="reviewed", reviewed_by=reviewer_id, reviewed_at=now, resolution_action=action, updated_at=now)
        )
        if session is not None:
            result = await session.execute(stmt)
            return int(result.rowcount or 0)
        async with self._session_factory() as own_session:
            result = await own_session.execute(stmt)
            await own_session.commit()
            return int(result.rowcount or 0)

    async def list_for_target(
        self, target: TargetKey, status: str | None, page: int, limit: int
    ) -> tuple[list[ContentReport], int]:
        conditions = [ContentReport.target_kind == target.kind.value, ContentReport.target_id == target.id]
        if status:
            conditions.append(ContentReport.status == status)

        async with self._session_factory() as session:
            total = (await session.execute(select(func.count()).select_from(ContentReport).where(*conditions))).scalar_one()
            result = await session.execute(
                select(ContentReport)
                .where(*conditions)
                .order_by(ContentReport.created_at.desc(), ContentReport.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            return list(result.scalars().all()), int(total)


class ReportService:
    """User-facing report creation and admin report listing."""

    def __init__(self, repository: ReportRepository, stores: ContentStoreRegistry) -> None:
        self.repository = repository
        self.stores = stores

    async def create_or_update_report(
        self,
        reporter_id: int | str,
        target_kind: str,
        target_id: int | str,
        reason_code: str,
        note: str | None = None,
    ) -> tuple[dict, bool]:
        """
        File a report, or re-open the reporter's previous report on the same target.

        Raises:
            ValidationError: Malformed ids, kind or reason
            NotFoundError: Target content does not exist
            ConflictError: Reporter owns the target
        """
        reporter = parse_id(reporter_id, "reporter_id")
        target = parse_target(target_kind, target_id)
        reason = parse_reason_code(reason_code)

        note = note.strip() if note and note.strip() else None
        if note and len(note) > MAX_NOTE_LENGTH:
            raise ValidationError(f"note must be at most {MAX_NOTE_LENGTH} characters")

        content = await self.stores.get(target.kind).find_by_id(target.id)
        if content is None:
            raise NotFoundError("Target content not found", details={"target": str(target)})

        if owner_id_of(target.kind, content) == reporter:
            raise ConflictError("You cannot report your own content")

        report, created = await self.repository.upsert_by_reporter_and_target(reporter, target, reason, note)
        logger.info(f"Report {'created' if created else 'updated'}: reporter={reporter}, target={target}, reason={reason}")
        return report_to_dict(report), created

    async def list_reports_for_target(
        self,
        target_kind: str,
        target_id: int | str,
        status: str | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page:
        target = parse_target(target_kind, target_id)
        if status is not None:
            status = parse_report_status(status)
        page_no, page_size = normalize_page(page, limit)

        items, total = await self.repository.list_for_target(target, status, page_no, page_size)
        return Page.build([report_to_dict(item) for item in items], page_no, page_size, total)
