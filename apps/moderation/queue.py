"""Moderation queue: cross-kind listing, single and bulk moderation actions, and rollback."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from functools import partial
from typing import Any, NamedTuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from apps.moderation.errors import ConflictError, InternalError, ModerationError, NotFoundError, ValidationError
from apps.moderation.events import ModerationEventStore, event_to_dict
from apps.moderation.kinds import (
    ACTION_TO_STATUS,
    ALL_KINDS,
    STATUS_TO_ACTION,
    TEXT_FIELD,
    ContentKind,
    TargetKey,
    is_base_kind,
    normalize_moderation_status,
    parse_action,
    parse_id,
    parse_kind,
    parse_moderation_status,
    parse_priority_tier,
    parse_publish_status,
    parse_target,
)
from apps.moderation.pagination import Page, normalize_page
from apps.moderation.reports import ReportRepository
from apps.moderation.signals import EMPTY_SUMMARY, ReportSignalAggregator, ReportSignalSummary, is_tier_at_least
from apps.moderation.stores import ContentQuery, ContentStoreRegistry, owner_id_of
from core.db import utcnow
from core.metrics import (
    bulk_moderation_item_failures_total,
    bulk_moderation_runs_total,
    moderation_actions_total,
    moderation_rollbacks_total,
    queue_listing_duration,
)
from models.moderation import ModerationEvent

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 80
MAX_REASON_LENGTH = 500
MAX_NOTE_LENGTH = 2000
BULK_MAX_ITEMS = 50
BULK_CONFIRM_THRESHOLD = 10
FAST_HIDE_REASON = "Fast-track preventive hide"


def excerpt(text: str | None, length: int = EXCERPT_LENGTH) -> str:
    """Collapse whitespace and cut text to `length` characters."""
    collapsed = " ".join((text or "").split())
    if len(collapsed) <= length:
        return collapsed
    return collapsed[: length - 3].rstrip() + "..."


@dataclass
class QueueItem:
    target: TargetKey
    title: str
    slug: str
    description: str
    category: str
    status: str
    moderation_status: str
    moderation_reason: str | None
    moderation_note: str | None
    moderated_by: int | None
    moderated_at: datetime | None
    owner_id: int | None
    created_at: datetime | None
    updated_at: datetime | None
    report_signals: ReportSignalSummary = field(default=EMPTY_SUMMARY)

    @classmethod
    def from_content(cls, kind: ContentKind, content: Any) -> "QueueItem":
        if is_base_kind(kind):
            title = content.title or ""
            slug = content.slug or ""
            description = content.description or ""
            category = content.category or ""
            status = content.status or "published"
        else:
            # Comments and reviews have no title or publish lifecycle
            text = getattr(content, TEXT_FIELD[kind]) or ""
            title = excerpt(text)
            slug = ""
            description = text
            category = ""
            status = "published"

        return cls(
            target=TargetKey(kind, content.id),
            title=title,
            slug=slug,
            description=description,
            category=category,
            status=status,
            moderation_status=normalize_moderation_status(content.moderation_status),
            moderation_reason=content.moderation_reason,
            moderation_note=content.moderation_note,
            moderated_by=content.moderated_by,
            moderated_at=content.moderated_at,
            owner_id=owner_id_of(kind, content),
            created_at=content.created_at,
            updated_at=content.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.target.id,
            "target_kind": self.target.kind.value,
            "title": self.title,
            "slug": self.slug,
            "description": self.description,
            "category": self.category,
            "status": self.status,
            "moderation_status": self.moderation_status,
            "moderation_reason": self.moderation_reason,
            "moderation_note": self.moderation_note,
            "moderated_by": self.moderated_by,
            "moderated_at": self.moderated_at,
            "owner_id": self.owner_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "report_signals": self.report_signals.to_dict(),
        }


@dataclass(frozen=True)
class QueueFilters:
    kind: Any = None
    moderation_status: Any = None
    publish_status: Any = None
    creator_id: Any = None
    search: str | None = None
    flagged_only: bool = False
    min_report_priority: Any = None


class RollbackItem(NamedTuple):
    target: TargetKey
    event_id: int


def clean_reason(reason_text: Any) -> str:
    reason = reason_text.strip() if isinstance(reason_text, str) else ""
    if not reason:
        raise ValidationError("reason_text is required")
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(f"reason_text must be at most {MAX_REASON_LENGTH} characters")
    return reason


def clean_note(note: Any) -> str | None:
    if note is None:
        return None
    if not isinstance(note, str):
        raise ValidationError("note must be a string")
    note = note.strip()
    if len(note) > MAX_NOTE_LENGTH:
        raise ValidationError(f"note must be at most {MAX_NOTE_LENGTH} characters")
    return note or None


def _parse_bulk_item(item: Any, index: int) -> TargetKey:
    if not isinstance(item, Mapping):
        raise ValidationError("Each bulk item must be an object", details={"index": index})
    try:
        return parse_target(item.get("target_kind"), item.get("target_id"))
    except ValidationError as exc:
        raise ValidationError(f"Invalid bulk item at index {index}: {exc.message}", details={"index": index}) from exc


def _parse_rollback_item(item: Any, index: int) -> RollbackItem:
    target = _parse_bulk_item(item, index)
    try:
        return RollbackItem(target, parse_id(item.get("event_id"), "event_id"))
    except ValidationError as exc:
        raise ValidationError(f"Invalid bulk item at index {index}: {exc.message}", details={"index": index}) from exc


def _check_bulk_items(
    items: Any, parse_item: Callable[[Any, int], Any], confirm: bool
) -> tuple[list[Any], int, bool]:
    """
    Apply the batch guardrails shared by bulk moderation and bulk rollback.

    Returns:
        (unique parsed items in request order, duplicates skipped, whether confirmation applied)
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")
    if len(items) > BULK_MAX_ITEMS:
        raise ValidationError(
            f"Bulk requests accept at most {BULK_MAX_ITEMS} items",
            details={"max_items": BULK_MAX_ITEMS, "received": len(items)},
        )

    parsed = [parse_item(item, index) for index, item in enumerate(items)]
    unique = list(dict.fromkeys(parsed))

    confirm_applied = len(unique) >= BULK_CONFIRM_THRESHOLD
    if confirm_applied and confirm is not True:
        raise ValidationError(
            f"Batches of {BULK_CONFIRM_THRESHOLD} or more items require confirm=true",
            details={"confirm_threshold": BULK_CONFIRM_THRESHOLD, "items": len(unique)},
        )
    return unique, len(parsed) - len(unique), confirm_applied


def _bulk_report(requested: int, outcomes: list[dict[str, Any]], duplicates_skipped: int, confirm_applied: bool) -> dict:
    succeeded = sum(1 for outcome in outcomes if outcome["success"])
    return {
        "items": outcomes,
        "summary": {
            "requested": requested,
            "processed": len(outcomes),
            "succeeded": succeeded,
            "failed": len(outcomes) - succeeded,
            "changed": sum(1 for outcome in outcomes if outcome.get("changed")),
        },
        "guardrails": {
            "max_items": BULK_MAX_ITEMS,
            "confirm_threshold": BULK_CONFIRM_THRESHOLD,
            "confirm_applied": confirm_applied,
            "duplicates_skipped": duplicates_skipped,
        },
    }


def _sort_queue(items: list[QueueItem]) -> None:
    # Stable sorts, least significant key first
    items.sort(key=lambda item: item.updated_at or datetime.min, reverse=True)
    items.sort(key=lambda item: item.report_signals.latest_report_at or datetime.min, reverse=True)
    items.sort(key=lambda item: item.report_signals.priority_score, reverse=True)


class ModerationQueueService:
    """Admin moderation operations over every content kind."""

    def __init__(
        self,
        stores: ContentStoreRegistry,
        reports: ReportRepository,
        events: ModerationEventStore,
        aggregator: ReportSignalAggregator,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self.stores = stores
        self.reports = reports
        self.events = events
        self.aggregator = aggregator
        self._session_factory = session_factory

    async def list_queue(
        self,
        filters: QueueFilters | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page:
        """
        List moderatable content across kinds, most urgent first.

        Raises:
            ValidationError: Invalid filter value
        """
        filters = filters or QueueFilters()
        page_no, page_size = normalize_page(page, limit)
        started = time.time()

        kinds = [parse_kind(filters.kind)] if filters.kind else list(ALL_KINDS)
        moderation_status = parse_moderation_status(filters.moderation_status) if filters.moderation_status else None
        publish_status = parse_publish_status(filters.publish_status) if filters.publish_status else None
        creator_id = parse_id(filters.creator_id, "creator_id") if filters.creator_id else None
        min_priority = parse_priority_tier(filters.min_report_priority) if filters.min_report_priority else None

        if publish_status and publish_status != "published":
            kinds = [kind for kind in kinds if is_base_kind(kind)]

        query = ContentQuery(
            moderation_status=moderation_status,
            publish_status=publish_status,
            owner_ids=[creator_id] if creator_id is not None else None,
            search=filters.search,
        )
        results = await asyncio.gather(*(self.stores.get(kind).find(query) for kind in kinds))

        items = [QueueItem.from_content(kind, doc) for kind, docs in zip(kinds, results) for doc in docs]
        summaries = await self.aggregator.get_open_report_summaries(item.target for item in items)
        items = [replace(item, report_signals=summaries.get(item.target, EMPTY_SUMMARY)) for item in items]

        if filters.flagged_only:
            items = [item for item in items if item.report_signals.open_reports > 0]
        if min_priority:
            items = [item for item in items if is_tier_at_least(item.report_signals.priority_tier, min_priority)]

        _sort_queue(items)
        start = (page_no - 1) * page_size
        result = Page.build(
            [item.to_dict() for item in items[start : start + page_size]], page_no, page_size, len(items)
        )

        queue_listing_duration.observe(time.time() - started)
        return result

    async def list_history(
        self, target_kind: Any, target_id: Any, page: int | None = None, limit: int | None = None
    ) -> Page:
        target = parse_target(target_kind, target_id)
        page_no, page_size = normalize_page(page, limit)
        events, total = await self.events.list_for_target(target, page_no, page_size)
        return Page.build([event_to_dict(event) for event in events], page_no, page_size, total)

    async def _load_content(self, target: TargetKey) -> Any:
        content = await self.stores.get(target.kind).find_by_id(target.id)
        if content is None:
            raise NotFoundError("Target content not found", details={"target": str(target)})
        return content

    async def _apply_status(
        self,
        actor: int,
        target: TargetKey,
        content: Any,
        action: str,
        reason: str,
        note: str | None,
        metadata: dict[str, Any],
        resolve_reports: bool = True,
    ) -> dict[str, Any]:
        """
        Write the status change, report resolution and ledger event in one transaction.

        Raises:
            InternalError: The database rejected the write; nothing was applied
        """
        store = self.stores.get(target.kind)
        from_status = normalize_moderation_status(content.moderation_status)
        to_status = ACTION_TO_STATUS[action]
        changed = (
            from_status != to_status
            or (content.moderation_reason or "") != reason
            or (content.moderation_note or "") != (note or "")
        )

        content.moderation_status = to_status
        content.moderation_reason = reason
        content.moderation_note = note
        content.moderated_by = actor
        content.moderated_at = utcnow()

        async with self._session_factory() as session:
            try:
                await store.save(content, session=session)
                resolved = 0
                if resolve_reports:
                    resolved = await self.reports.mark_open_resolved(target, actor, action, session=session)
                await self.events.append(
                    ModerationEvent(
                        target_kind=target.kind.value,
                        target_id=target.id,
                        actor_id=actor,
                        action=action,
                        from_status=from_status,
                        to_status=to_status,
                        reason_text=reason,
                        note=note,
                        metadata_={
                            "changed": changed,
                            "publish_status": content.status if is_base_kind(target.kind) else None,
                            "resolved_reports": resolved,
                            **metadata,
                        },
                    ),
                    session=session,
                )
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error(f"Moderation write rolled back: target={target}, action={action}, error={exc}")
                raise InternalError(
                    "Moderation action could not be saved", details={"target": str(target)}
                ) from exc

        refreshed = await store.find_by_id(target.id)
        item = QueueItem.from_content(target.kind, refreshed)
        item.report_signals = await self.aggregator.get_summary(target)

        moderation_actions_total.labels(kind=target.kind.value, action=action, changed=str(changed).lower()).inc()
        logger.info(
            f"Moderation applied: actor={actor}, target={target}, action={action}, "
            f"{from_status}->{to_status}, changed={changed}, resolved_reports={resolved}"
        )
        return {"changed": changed, "from_status": from_status, "to_status": to_status, "content": item.to_dict()}

    async def moderate(
        self,
        actor_id: Any,
        target_kind: Any,
        target_id: Any,
        action: Any,
        reason_text: Any,
        note: Any = None,
        source: str | None = None,
    ) -> dict[str, Any]:
        """
        Apply hide, unhide or restrict to one target.

        Open reports on the target are resolved and one event is recorded,
        even when nothing changed.

        Returns:
            Dict with changed, from_status, to_status and the refreshed content

        Raises:
            ValidationError: Malformed input
            NotFoundError: Target content does not exist
            InternalError: The write failed and was rolled back
        """
        actor = parse_id(actor_id, "actor_id")
        target = parse_target(target_kind, target_id)
        action = parse_action(action)
        reason = clean_reason(reason_text)
        note = clean_note(note)

        content = await self._load_content(target)
        return await self._apply_status(actor, target, content, action, reason, note, {"source": source} if source else {})

    async def fast_hide(
        self, actor_id: Any, target_kind: Any, target_id: Any, note: Any = None, reason_text: Any = None
    ) -> dict[str, Any]:
        """Hide with a default operational reason when the caller gives none."""
        if not (isinstance(reason_text, str) and reason_text.strip()):
            reason_text = FAST_HIDE_REASON
        return await self.moderate(actor_id, target_kind, target_id, "hide", reason_text, note, source="fast_track")

    async def _rollback_subject(self, target: TargetKey, event_id: Any) -> tuple[ModerationEvent, Any, int]:
        event_key = parse_id(event_id, "event_id")
        event = await self.events.get(event_key)
        if event is None or event.target_kind != target.kind.value or event.target_id != target.id:
            raise NotFoundError(
                "Moderation event not found for this target", details={"target": str(target), "event_id": event_key}
            )
        content = await self._load_content(target)
        newer = await self.events.count_newer(target, event.id)
        return event, content, newer

    async def rollback_review(self, target_kind: Any, target_id: Any, event_id: Any) -> dict[str, Any]:
        """
        Preview what rolling back one ledger event would do.

        The restored status is the event's from_status. A rollback over an
        event that later events have superseded needs confirm=true.

        Raises:
            ValidationError: Malformed kind or ids
            NotFoundError: Content, or an event belonging to it, does not exist
        """
        target = parse_target(target_kind, target_id)
        event, content, newer = await self._rollback_subject(target, event_id)

        current_status = normalize_moderation_status(content.moderation_status)
        restore_status = normalize_moderation_status(event.from_status)
        item = QueueItem.from_content(target.kind, content)
        item.report_signals = await self.aggregator.get_summary(target)

        return {
            "event": event_to_dict(event),
            "current_status": current_status,
            "restore_status": restore_status,
            "rollback_action": STATUS_TO_ACTION[restore_status],
            "would_change": current_status != restore_status,
            "newer_events": newer,
            "requires_confirm": newer > 0,
            "content": item.to_dict(),
        }

    async def rollback(
        self,
        actor_id: Any,
        target_kind: Any,
        target_id: Any,
        event_id: Any,
        reason_text: Any,
        note: Any = None,
        confirm: bool = False,
        mark_false_positive: bool = False,
        bulk: bool = False,
    ) -> dict[str, Any]:
        """
        Restore the status a ledger event replaced and record the reversal as a new event.

        Open reports are left untouched. The original event stays in the ledger.

        Raises:
            ValidationError: Malformed input
            NotFoundError: Content, or an event belonging to it, does not exist
            ConflictError: Newer events exist and confirm is not set
            InternalError: The write failed and was rolled back
        """
        actor = parse_id(actor_id, "actor_id")
        target = parse_target(target_kind, target_id)
        reason = clean_reason(reason_text)
        note = clean_note(note)

        event, content, newer = await self._rollback_subject(target, event_id)
        if newer and confirm is not True:
            raise ConflictError(
                "Content was moderated again after this event; rollback requires confirm=true",
                details={"event_id": event.id, "newer_events": newer},
            )

        restore_status = normalize_moderation_status(event.from_status)
        metadata: dict[str, Any] = {
            "source": "rollback",
            "rollback_of_event_id": event.id,
            "false_positive": mark_false_positive is True,
        }
        if bulk:
            metadata["bulk"] = True

        result = await self._apply_status(
            actor, target, content, STATUS_TO_ACTION[restore_status], reason, note, metadata, resolve_reports=False
        )

        moderation_rollbacks_total.labels(
            kind=target.kind.value, false_positive=str(mark_false_positive is True).lower()
        ).inc()
        logger.info(f"Rollback applied: actor={actor}, target={target}, event={event.id}, restored={restore_status}")

        result["rollback"] = {"event_id": event.id, "restored_status": restore_status, "newer_events": newer}
        return result

    async def _run_bulk(
        self,
        operation: str,
        jobs: list[tuple[dict[str, Any], Callable[[], Awaitable[dict[str, Any]]]]],
    ) -> list[dict[str, Any]]:
        """Run item jobs one by one, capturing per-item failures."""
        outcomes: list[dict[str, Any]] = []
        for base, run in jobs:
            try:
                result = await run()
            except ModerationError as exc:
                bulk_moderation_item_failures_total.labels(status_code=str(exc.status_code)).inc()
                logger.warning(f"Bulk {operation} item failed: item={base}, error={exc.message}")
                outcomes.append({**base, "success": False, "error": exc.message, "status_code": exc.status_code})
            else:
                outcomes.append(
                    {
                        **base,
                        "success": True,
                        "changed": result["changed"],
                        "from_status": result["from_status"],
                        "to_status": result["to_status"],
                    }
                )
        return outcomes

    async def bulk_moderate(
        self,
        actor_id: Any,
        action: Any,
        reason_text: Any,
        items: Any,
        note: Any = None,
        confirm: bool = False,
    ) -> dict[str, Any]:
        """
        Apply one action to many targets.

        Input and guardrails are checked before anything is written. Once
        processing starts, per-item failures are reported in the result
        instead of aborting the batch.

        Raises:
            ValidationError: Bad input, empty or oversized batch, or missing confirmation
        """
        try:
            actor = parse_id(actor_id, "actor_id")
            action = parse_action(action)
            reason = clean_reason(reason_text)
            note = clean_note(note)
            targets, duplicates_skipped, confirm_applied = _check_bulk_items(items, _parse_bulk_item, confirm)
        except ValidationError as exc:
            bulk_moderation_runs_total.labels(operation="moderate", outcome="rejected").inc()
            logger.info(f"Bulk moderation rejected: actor={actor_id}, reason={exc.message}")
            raise

        jobs = [
            (
                {"target_kind": target.kind.value, "target_id": target.id},
                partial(self.moderate, actor, target.kind, target.id, action, reason, note, source="bulk"),
            )
            for target in targets
        ]
        outcomes = await self._run_bulk("moderation", jobs)
        report = _bulk_report(len(items), outcomes, duplicates_skipped, confirm_applied)

        failed = report["summary"]["failed"]
        bulk_moderation_runs_total.labels(operation="moderate", outcome="partial" if failed else "completed").inc()
        logger.info(
            f"Bulk moderation finished: actor={actor}, action={action}, requested={len(items)}, "
            f"processed={len(outcomes)}, succeeded={report['summary']['succeeded']}, failed={failed}"
        )
        return {"action": action, **report}

    async def bulk_rollback(
        self,
        actor_id: Any,
        reason_text: Any,
        items: Any,
        note: Any = None,
        confirm: bool = False,
        mark_false_positive: bool = False,
    ) -> dict[str, Any]:
        """
        Roll back many ledger events, one item per target and event id.

        Same guardrails as bulk moderation. confirm=true also lets items
        whose event has newer events roll back.

        Raises:
            ValidationError: Bad input, empty or oversized batch, or missing confirmation
        """
        try:
            actor = parse_id(actor_id, "actor_id")
            reason = clean_reason(reason_text)
            note = clean_note(note)
            rollback_items, duplicates_skipped, confirm_applied = _check_bulk_items(
                items, _parse_rollback_item, confirm
            )
        except ValidationError as exc:
            bulk_moderation_runs_total.labels(operation="rollback", outcome="rejected").inc()
            logger.info(f"Bulk rollback rejected: actor={actor_id}, reason={exc.message}")
            raise

        jobs = [
            (
                {"target_kind": item.target.kind.value, "target_id": item.target.id, "event_id": item.event_id},
                partial(
                    self.rollback,
                    actor,
                    item.target.kind,
                    item.target.id,
                    item.event_id,
                    reason,
                    note,
                    confirm=confirm,
                    mark_false_positive=mark_false_positive,
                    bulk=True,
                ),
            )
            for item in rollback_items
        ]
        outcomes = await self._run_bulk("rollback", jobs)
        report = _bulk_report(len(items), outcomes, duplicates_skipped, confirm_applied)

        failed = report["summary"]["failed"]
        bulk_moderation_runs_total.labels(operation="rollback", outcome="partial" if failed else "completed").inc()
        logger.info(
            f"Bulk rollback finished: actor={actor}, requested={len(items)}, "
            f"processed={len(outcomes)}, succeeded={report['summary']['succeeded']}, failed={failed}"
        )
        return report
