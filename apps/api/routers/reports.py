"""End-user content reporting endpoint."""

import logging
import time
from typing import Any

import redis.asyncio as redis
from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from apps.api.deps import get_redis_client, get_services
from apps.moderation.services import ModerationServices
from core.auth import client_auth
from core.config import settings
from core.metrics import reports_latency_seconds, reports_total
from core.redis import acquire_rate_limit

router = APIRouter(prefix="/reports", tags=["reports"])
logger = logging.getLogger(__name__)


class ReportIn(BaseModel):
    """Input model for reporting a piece of content."""

    target_kind: str
    target_id: int = Field(gt=0)
    reason_code: str  # scam|sexual|violence|hate|misinformation|copyright|abuse|spam|other
    note: str | None = None


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_report(
    body: ReportIn,
    response: Response,
    reporter_id: int = Depends(client_auth),
    services: ModerationServices = Depends(get_services),
    redis_client: redis.Redis = Depends(get_redis_client),
) -> dict[str, Any]:
    """
    Report a piece of content, or update the caller's earlier report on it.

    A repeated report re-opens the existing one with the new reason and note.

    Returns:
        {"report": {...}, "created": bool}; 201 when created, 200 when updated

    Raises:
        HTTPException: 429 while the reporter's rate limit window is held
    """
    t0 = time.perf_counter()
    try:
        window = settings.report_rate_limit_seconds
        if window > 0 and not await acquire_rate_limit(redis_client, f"rl:report:{reporter_id}", window):
            raise HTTPException(429, "Too many reports. Please wait before reporting again.")

        report, created = await services.reports.create_or_update_report(
            reporter_id=reporter_id,
            target_kind=body.target_kind,
            target_id=body.target_id,
            reason_code=body.reason_code,
            note=body.note,
        )

        reports_total.labels(reason=report["reason_code"], created=str(created).lower()).inc()
        if not created:
            response.status_code = status.HTTP_200_OK

        return {"report": report, "created": created}

    finally:
        reports_latency_seconds.observe(time.perf_counter() - t0)
