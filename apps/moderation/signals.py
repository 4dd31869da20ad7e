"""Report signal aggregation and priority classification.

The scoring formula is a contract shared by queue ordering, the policy
engine and creator trust scoring:

    score = open_reports + unique_reporters + highest weight among top 3 reasons
    tier  = critical >= 12, high >= 8, medium >= 4, low >= 1, else none
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from apps.moderation.kinds import TargetKey, parse_target
from apps.moderation.reports import OpenReportRow, ReportRepository

REASON_WEIGHTS: dict[str, int] = {
    "scam": 5,
    "sexual": 4,
    "violence": 4,
    "hate": 4,
    "misinformation": 3,
    "copyright": 3,
    "abuse": 3,
    "spam": 2,
    "other": 1,
}

TIER_RANK: dict[str, int] = {"none": 0, "low": 1, "medium": 2, "high": 3, "critical": 4}

TOP_REASONS_LIMIT = 3


@dataclass(frozen=True)
class ReasonCount:
    reason_code: str
    count: int


@dataclass(frozen=True)
class ReportSignalSummary:
    open_reports: int = 0
    unique_reporters: int = 0
    latest_report_at: datetime | None = None
    top_reasons: tuple[ReasonCount, ...] = ()
    priority_score: int = 0
    priority_tier: str = "none"

    @property
    def reason_codes(self) -> list[str]:
        return [item.reason_code for item in self.top_reasons]

    def to_dict(self) -> dict[str, Any]:
        return {
            "open_reports": self.open_reports,
            "unique_reporters": self.unique_reporters,
            "latest_report_at": self.latest_report_at,
            "top_reasons": [{"reason_code": item.reason_code, "count": item.count} for item in self.top_reasons],
            "priority_score": self.priority_score,
            "priority_tier": self.priority_tier,
        }


EMPTY_SUMMARY = ReportSignalSummary()


def reason_weight(reason_code: str) -> int:
    return REASON_WEIGHTS.get(reason_code, 0)


def classify_priority(score: int) -> str:
    if score >= 12:
        return "critical"
    if score >= 8:
        return "high"
    if score >= 4:
        return "medium"
    if score >= 1:
        return "low"
    return "none"


def is_tier_at_least(current: str, minimum: str) -> bool:
    return TIER_RANK.get(current, 0) >= TIER_RANK.get(minimum, 0)


def rank_reasons(reasons: Iterable[str], limit: int = TOP_REASONS_LIMIT) -> tuple[ReasonCount, ...]:
    """Count reason codes, most frequent first, ties broken by code."""
    counts = Counter(reasons)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return tuple(ReasonCount(reason_code=code, count=count) for code, count in ranked[:limit])


def build_report_signal_summary(
    open_reports: int,
    unique_reporters: int,
    latest_report_at: datetime | None,
    reasons: Iterable[str],
) -> ReportSignalSummary:
    """
    Score one target's open reports.

    Args:
        open_reports: Number of open reports
        unique_reporters: Number of distinct reporters among them
        latest_report_at: Most recent report timestamp
        reasons: Every open report's reason code, duplicates included

    Returns:
        Summary with priority score and tier
    """
    top_reasons = rank_reasons(reasons)
    highest_weight = max((reason_weight(item.reason_code) for item in top_reasons), default=0)
    priority_score = open_reports + unique_reporters + highest_weight

    return ReportSignalSummary(
        open_reports=open_reports,
        unique_reporters=unique_reporters,
        latest_report_at=latest_report_at,
        top_reasons=top_reasons,
        priority_score=priority_score,
        priority_tier=classify_priority(priority_score),
    )


@dataclass
class _TargetAccumulator:
    open_reports: int = 0
    reporters: set[int] = field(default_factory=set)
    latest_report_at: datetime | None = None
    reasons: list[str] = field(default_factory=list)

    def add(self, row: OpenReportRow) -> None:
        self.open_reports += 1
        self.reporters.add(row.reporter_id)
        self.reasons.append(row.reason_code)
        if self.latest_report_at is None or row.created_at > self.latest_report_at:
            self.latest_report_at = row.created_at

    def summary(self) -> ReportSignalSummary:
        return build_report_signal_summary(self.open_reports, len(self.reporters), self.latest_report_at, self.reasons)


def fold_open_reports(rows: Iterable[OpenReportRow]) -> dict[TargetKey, ReportSignalSummary]:
    """Group open report rows by target and score each group."""
    accumulators: dict[TargetKey, _TargetAccumulator] = {}
    for row in rows:
        accumulators.setdefault(row.target, _TargetAccumulator()).add(row)
    return {target: acc.summary() for target, acc in accumulators.items()}


class ReportSignalAggregator:
    """Computes report signal summaries from live open reports."""

    def __init__(self, repository: ReportRepository) -> None:
        self.repository = repository

    async def get_open_report_summaries(self, targets: Iterable[Any]) -> dict[TargetKey, ReportSignalSummary]:
        """
        Summarize open reports for many targets at once.

        Targets may be TargetKey values or raw (kind, id) pairs. Every
        requested target gets an entry; targets without open reports map
        to the empty summary.
        """
        deduped = list(dict.fromkeys(parse_target(kind, target_id) for kind, target_id in targets))
        if not deduped:
            return {}

        rows = await self.repository.find_open_grouped_by_target(deduped)
        summaries = fold_open_reports(rows)
        return {target: summaries.get(target, EMPTY_SUMMARY) for target in deduped}

    async def get_summary(self, target: TargetKey) -> ReportSignalSummary:
        summaries = await self.get_open_report_summaries([target])
        return summaries[target]
