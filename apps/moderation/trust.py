"""Creator trust scoring.

Folds the report, moderation and account-control history of everything a
creator owns into a 0..100 trust score, a risk level and a suggested
operational control.
"""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from apps.moderation.controls import CREATOR_CONTROL_EVENT, active_control_flags
from apps.moderation.errors import ValidationError
from apps.moderation.events import ModerationEventStore
from apps.moderation.kinds import ContentKind, TargetKey, normalize_moderation_status, parse_id
from apps.moderation.signals import ReportSignalAggregator, ReportSignalSummary, is_tier_at_least
from apps.moderation.stores import ContentQuery, ContentStoreRegistry, owner_id_of
from apps.moderation.users import UserRepository
from core.db import utcnow
from core.metrics import creator_trust_scored_total

logger = logging.getLogger(__name__)

LOOKBACK = timedelta(days=30)
MAX_REASONS = 4
DOMINANT_REASONS = 2


@dataclass
class CreatorAccumulator:
    creator_id: int
    active_control_flags: list[str] = field(default_factory=list)
    open_reports: int = 0
    high_priority_targets: int = 0
    critical_targets: int = 0
    hidden_items: int = 0
    restricted_items: int = 0
    recent_moderation_actions_30d: int = 0
    repeat_moderation_targets_30d: int = 0
    recent_creator_control_actions_30d: int = 0
    reason_counts: Counter = field(default_factory=Counter)

    def has_flag(self, flag: str) -> bool:
        return flag in self.active_control_flags

    def add_report_signals(self, summary: ReportSignalSummary) -> None:
        if summary.open_reports <= 0:
            return
        self.open_reports += summary.open_reports
        if is_tier_at_least(summary.priority_tier, "high"):
            self.high_priority_targets += 1
        if summary.priority_tier == "critical":
            self.critical_targets += 1
        for item in summary.top_reasons:
            self.reason_counts[item.reason_code] += item.count

    def add_moderation_events(self, total: int) -> None:
        self.recent_moderation_actions_30d += total
        if total > 1:
            self.repeat_moderation_targets_30d += 1


@dataclass(frozen=True)
class CreatorTrustSignals:
    trust_score: int
    risk_level: str  # low|medium|high|critical
    recommended_action: str  # none|review|set_cooldown|block_publishing|suspend_creator_ops
    generated_at: datetime
    summary: dict[str, Any]
    flags: list[str]
    reasons: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "trust_score": self.trust_score,
            "risk_level": self.risk_level,
            "recommended_action": self.recommended_action,
            "generated_at": self.generated_at,
            "summary": self.summary,
            "flags": self.flags,
            "reasons": self.reasons,
        }


def trust_penalty(acc: CreatorAccumulator) -> int:
    return (
        acc.open_reports * 2
        + acc.high_priority_targets * 8
        + acc.critical_targets * 14
        + acc.hidden_items * 5
        + acc.restricted_items * 3
        + acc.recent_moderation_actions_30d * 2
        + acc.repeat_moderation_targets_30d * 8
        + acc.recent_creator_control_actions_30d * 4
        + (8 if acc.has_flag("creation_blocked") else 0)
        + (12 if acc.has_flag("publishing_blocked") else 0)
        + (6 if acc.has_flag("cooldown_active") else 0)
    )


def classify_risk(acc: CreatorAccumulator, trust_score: int) -> str:
    if trust_score <= 25 or acc.critical_targets >= 2:
        return "critical"
    if trust_score <= 50 or acc.critical_targets >= 1 or acc.hidden_items >= 2:
        return "high"
    if (
        trust_score <= 75
        or acc.high_priority_targets >= 1
        or acc.recent_moderation_actions_30d >= 2
        or acc.active_control_flags
    ):
        return "medium"
    return "low"


def recommend_control(acc: CreatorAccumulator, risk_level: str) -> str:
    if risk_level == "critical" or (acc.has_flag("publishing_blocked") and acc.critical_targets >= 1):
        return "suspend_creator_ops"
    if risk_level == "high" or acc.hidden_items >= 1 or acc.has_flag("publishing_blocked"):
        return "block_publishing"
    if risk_level == "medium" or acc.has_flag("cooldown_active") or acc.has_flag("creation_blocked"):
        return "set_cooldown"
    if acc.open_reports > 0 or acc.restricted_items > 0:
        return "review"
    return "none"


def _trust_flags(acc: CreatorAccumulator) -> list[str]:
    flags = list(acc.active_control_flags)
    if acc.critical_targets > 0:
        flags.append("critical_report_targets")
    if acc.high_priority_targets > 0:
        flags.append("high_priority_targets")
    if acc.hidden_items > 0:
        flags.append("hidden_content_present")
    if acc.repeat_moderation_targets_30d > 0:
        flags.append("repeat_moderation_targets")
    return flags


def _trust_reasons(acc: CreatorAccumulator) -> list[str]:
    reasons: list[str] = []

    def push(reason: str) -> None:
        if reason not in reasons:
            reasons.append(reason)

    if acc.critical_targets > 0:
        push(f"{acc.critical_targets} target(s) with critical reports.")
    if acc.hidden_items > 0:
        push(f"{acc.hidden_items} item(s) currently hidden.")
    if acc.repeat_moderation_targets_30d > 0:
        push(f"{acc.repeat_moderation_targets_30d} target(s) moderated repeatedly in 30 days.")
    if acc.has_flag("publishing_blocked"):
        push("Publishing is currently blocked.")
    if acc.has_flag("creation_blocked"):
        push("Creation is currently blocked.")
    if acc.has_flag("cooldown_active"):
        push("Operational cooldown is active.")
    if not reasons and acc.open_reports > 0:
        push(f"{acc.open_reports} open report(s) under observation.")

    dominant = sorted(acc.reason_counts.items(), key=lambda item: (-item[1], item[0]))[:DOMINANT_REASONS]
    for reason_code, count in dominant:
        push(f"Dominant reason: {reason_code} ({count}).")

    return reasons[:MAX_REASONS]


def build_trust_signals(acc: CreatorAccumulator, now: datetime) -> CreatorTrustSignals:
    """Score one creator from accumulated counts."""
    trust_score = min(max(100 - trust_penalty(acc), 0), 100)
    risk_level = classify_risk(acc, trust_score)

    return CreatorTrustSignals(
        trust_score=trust_score,
        risk_level=risk_level,
        recommended_action=recommend_control(acc, risk_level),
        generated_at=now,
        summary={
            "open_reports": acc.open_reports,
            "high_priority_targets": acc.high_priority_targets,
            "critical_targets": acc.critical_targets,
            "hidden_items": acc.hidden_items,
            "restricted_items": acc.restricted_items,
            "recent_moderation_actions_30d": acc.recent_moderation_actions_30d,
            "repeat_moderation_targets_30d": acc.repeat_moderation_targets_30d,
            "recent_creator_control_actions_30d": acc.recent_creator_control_actions_30d,
            "active_control_flags": list(acc.active_control_flags),
        },
        flags=_trust_flags(acc),
        reasons=_trust_reasons(acc),
    )


def _valid_ids(raw_ids: list[Any]) -> list[int]:
    ids: list[int] = []
    for raw in raw_ids:
        try:
            ids.append(parse_id(raw, "creator_id"))
        except ValidationError:
            logger.debug(f"Skipping malformed creator id: {raw!r}")
    return list(dict.fromkeys(ids))


class CreatorTrustScorer:
    """Computes trust signals for batches of creators."""

    def __init__(
        self,
        stores: ContentStoreRegistry,
        aggregator: ReportSignalAggregator,
        events: ModerationEventStore,
        users: UserRepository,
    ) -> None:
        self.stores = stores
        self.aggregator = aggregator
        self.events = events
        self.users = users

    async def _collect_kind(
        self,
        kind: ContentKind,
        accumulators: dict[int, CreatorAccumulator],
        since: datetime,
    ) -> None:
        docs = await self.stores.get(kind).find(ContentQuery(owner_ids=list(accumulators)))
        owner_by_id: dict[int, int] = {}
        for doc in docs:
            owner_id = owner_id_of(kind, doc)
            acc = accumulators.get(owner_id) if owner_id is not None else None
            if acc is None:
                continue
            status = normalize_moderation_status(doc.moderation_status)
            if status == "hidden":
                acc.hidden_items += 1
            elif status == "restricted":
                acc.restricted_items += 1
            owner_by_id[doc.id] = owner_id

        if not owner_by_id:
            return

        ids = list(owner_by_id)
        summaries, event_counts = await asyncio.gather(
            self.aggregator.get_open_report_summaries(TargetKey(kind, content_id) for content_id in ids),
            self.events.count_by_target_since(kind, ids, since),
        )
        for target, summary in summaries.items():
            accumulators[owner_by_id[target.id]].add_report_signals(summary)
        for content_id, total in event_counts.items():
            accumulators[owner_by_id[content_id]].add_moderation_events(total)

    async def score_creators(self, creator_ids: list[Any]) -> dict[int, CreatorTrustSignals]:
        """
        Score creators by id.

        Ids that are malformed, unknown or not creators are omitted from
        the result rather than raising.
        """
        ids = _valid_ids(creator_ids)
        if not ids:
            return {}

        creators = await self.users.find_creators(ids)
        if not creators:
            return {}

        now = utcnow()
        since = now - LOOKBACK
        accumulators = {
            creator.id: CreatorAccumulator(creator_id=creator.id, active_control_flags=active_control_flags(creator, now))
            for creator in creators
        }

        await asyncio.gather(*(self._collect_kind(store.kind, accumulators, since) for store in self.stores))

        control_counts = await self.events.count_user_actions_since(list(accumulators), CREATOR_CONTROL_EVENT, since)
        for user_id, total in control_counts.items():
            accumulators[user_id].recent_creator_control_actions_30d = total

        result = {}
        for creator_id, acc in accumulators.items():
            signals = build_trust_signals(acc, now)
            creator_trust_scored_total.labels(risk_level=signals.risk_level).inc()
            result[creator_id] = signals

        logger.info(f"Scored {len(result)} creator(s) out of {len(ids)} requested")
        return result
