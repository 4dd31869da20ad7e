"""Admin moderation endpoints: queue, actions, rollback, signals, policy and creator controls."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from apps.api.deps import get_services
from apps.moderation.policy import build_auto_hide_reason
from apps.moderation.queue import QueueFilters
from apps.moderation.services import ModerationServices
from core.auth import admin_actor

router = APIRouter(prefix="/admin/moderation", tags=["moderation"])
logger = logging.getLogger(__name__)


class ModerateIn(BaseModel):
    reason_text: str
    note: str | None = None


class FastHideIn(BaseModel):
    reason_text: str | None = None
    note: str | None = None


class BulkModerateIn(BaseModel):
    """Bulk action request. Items are validated by the service, not here."""

    action: str
    reason_text: str
    note: str | None = None
    confirm: bool = False
    items: list[Any]


class RollbackIn(BaseModel):
    event_id: int
    reason_text: str
    note: str | None = None
    confirm: bool = False
    mark_false_positive: bool = False


class BulkRollbackIn(BaseModel):
    """Items carry target_kind, target_id and event_id; the service validates them."""

    reason_text: str
    note: str | None = None
    confirm: bool = False
    mark_false_positive: bool = False
    items: list[Any]


class TargetIn(BaseModel):
    target_kind: str
    target_id: int


class ReportSummariesIn(BaseModel):
    targets: list[TargetIn] = Field(max_length=200)


class CreatorTrustIn(BaseModel):
    creator_ids: list[int] = Field(max_length=200)


class CreatorControlIn(BaseModel):
    action: str
    reason_text: str
    note: str | None = None
    cooldown_hours: int | None = None


@router.get("/queue")
async def list_queue(
    kind: str | None = None,
    moderation_status: str | None = None,
    publish_status: str | None = None,
    creator_id: int | None = None,
    search: str | None = None,
    flagged_only: bool = False,
    min_report_priority: str | None = None,
    page: int | None = Query(None),
    limit: int | None = Query(None),
    _actor: int = Depends(admin_actor),
    services: ModerationServices = Depends(get_services),
) -> dict[str, Any]:
    """List moderatable content across kinds, highest report priority first."""
    filters = QueueFilters(
        kind=kind,
        moderation_status=moderation_status,
        publish_status=publish_status,
        creator_id=creator_id,
        search=search,
        flagged_only=flagged_only,
        min_report_priority=min_report_priority,
    )
    result = await services.queue.list_queue(filters, page=page, limit=limit)
    return result.to_dict()


@router.post("/bulk")
async def bulk_moderate(
    body: BulkModerateIn,
    actor_id: int = Depends(admin_actor),
    services: ModerationServices = Depends(get_services),
) -> dict[str, Any]:
    """
    Apply one action to up to 50 targets.

    Batches of 10 or more unique targets need confirm=true. Per-item
    failures are reported in the result.
    """
    return await services.queue.bulk_moderate(
        actor_id=actor_id,
        action=body.action,
        reason_text=body.reason_text,
        items=body.items,
        note=body.note,
        confirm=body.confirm,
    )


@router.post("/bulk-rollback")
async def bulk_rollback(
    body: BulkRollbackIn,
    actor_id: int = Depends(admin_actor),
    services: ModerationServices = Depends(get_services),
) -> dict[str, Any]:
    """Roll back up to 50 ledger events with the bulk guardrails."""
    return await services.queue.bulk_rollback(
        actor_id=actor_id,
        reason_text=body.reason_text,
        items=body.items,
        note=body.note,
        confirm=body.confirm,
        mark_false_positive=body.mark_false_positive,
    )


@router.post("/report-summaries")
async def report_summaries(
    body: ReportSummariesIn,
    _actor: int = Depends(admin_actor),
    services: ModerationServices = Depends(get_services),
) -> dict[str, Any]:
    summaries = await services.aggregator.get_open_report_summaries(
        (target.target_kind, target.target_id) for target in body.targets
    )
    return {
        "items": [
            {"target_kind": target.kind.value, "target_id": target.id, **summary.to_dict()}
            for target, summary in summaries.items()
        ]
    }


@router.post("/creators/trust")
async def creator_trust(
    body: CreatorTrustIn,
    _actor: int = Depends(admin_actor),
    services: ModerationServices = Depends(get_services),
) -> dict[str, Any]:
    """Trust signals keyed by creator id. Unknown and non-creator ids are omitted."""
    signals = await services.trust.score_creators(body.creator_ids)
    return {"creators": {str(creator_id): item.to_dict() for creator_id, item in signals.items()}}


@router.post("/creators/{creator_id}/controls")
async def creator_controls(
    creator_id: str,
    body: CreatorControlIn,
    actor_id: int = Depends(admin_actor),
    services: ModerationServices = Depends(get_services),
) -> dict[str, Any]:
    return await services.controls.apply_creator_control(
        actor_id=actor_id,
        creator_id=creator_id,
        action=body.action,
        reason_text=body.reason_text,
        note=body.note,
        cooldown_hours=body.cooldown_hours,
    )


@router.get("/{kind}/{target_id}/history")
async def moderation_history(
    kind: str,
    target_id: str,
    page: int | None = Query(None),
    limit: int | None = Query(None),
    _actor: int = Depends(admin_actor),
    services: ModerationServices = Depends(get_services),
) -> dict[str, Any]:
    result = await services.queue.list_history(kind, target_id, page=page, limit=limit)
    return result.to_dict()


@router.get("/{kind}/{target_id}/reports")
async def target_reports(
    kind: str,
    target_id: str,
    status: str | None = None,
    page: int | None = Query(None),
    limit: int | None = Query(None),
    _actor: int = Depends(admin_actor),
    services: ModerationServices = Depends(get_services),
) -> dict[str, Any]:
    result = await services.reports.list_reports_for_target(kind, target_id, status=status, page=page, limit=limit)
    return result.to_dict()


@router.get("/{kind}/{target_id}/policy")
async def target_policy(
    kind: str,
    target_id: str,
    _actor: int = Depends(admin_actor),
    services: ModerationServices = Depends(get_services),
) -> dict[str, Any]:
    """Policy recommendation and auto-hide eligibility for one target."""
    evaluation = await services.policy.evaluate(kind, target_id)
    result = evaluation.to_dict()
    if evaluation.policy_signals.automation_eligible:
        result["auto_hide_reason"] = build_auto_hide_reason(evaluation)
    return result


@router.get("/{kind}/{target_id}/rollback-review")
async def rollback_review(
    kind: str,
    target_id: str,
    event_id: int,
    _actor: int = Depends(admin_actor),
    services: ModerationServices = Depends(get_services),
) -> dict[str, Any]:
    return await services.queue.rollback_review(kind, target_id, event_id)


@router.post("/{kind}/{target_id}/rollback")
async def rollback(
    kind: str,
    target_id: str,
    body: RollbackIn,
    actor_id: int = Depends(admin_actor),
    services: ModerationServices = Depends(get_services),
) -> dict[str, Any]:
    """Restore the status one ledger event replaced. Newer events require confirm=true."""
    return await services.queue.rollback(
        actor_id,
        kind,
        target_id,
        body.event_id,
        body.reason_text,
        body.note,
        confirm=body.confirm,
        mark_false_positive=body.mark_false_positive,
    )


@router.post("/{kind}/{target_id}/hide-fast")
async def fast_hide(
    kind: str,
    target_id: str,
    body: FastHideIn | None = None,
    actor_id: int = Depends(admin_actor),
    services: ModerationServices = Depends(get_services),
) -> dict[str, Any]:
    body = body or FastHideIn()
    return await services.queue.fast_hide(actor_id, kind, target_id, note=body.note, reason_text=body.reason_text)


@router.post("/{kind}/{target_id}/{action}")
async def moderate(
    kind: str,
    target_id: str,
    action: str,
    body: ModerateIn,
    actor_id: int = Depends(admin_actor),
    services: ModerationServices = Depends(get_services),
) -> dict[str, Any]:
    """Hide, unhide or restrict one target. Open reports on it are resolved."""
    return await services.queue.moderate(actor_id, kind, target_id, action, body.reason_text, body.note)
