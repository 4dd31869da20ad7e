"""Moderation policy engine.

Turns a target's report signals and current moderation status into a
recommendation, and decides whether the target qualifies for an automated
preventive hide. The engine only evaluates; acting on an eligible verdict
is the job of an external scheduler.
"""

import logging
from dataclasses import dataclass
from typing import Any

from apps.moderation.errors import NotFoundError
from apps.moderation.kinds import TargetKey, normalize_moderation_status, parse_target
from apps.moderation.signals import ReportSignalAggregator, ReportSignalSummary, is_tier_at_least
from apps.moderation.stores import ContentStoreRegistry
from core.config import ModerationPolicyConfig
from core.metrics import policy_evaluations_total

logger = logging.getLogger(__name__)

HIGH_RISK_REASONS = frozenset({"scam", "hate", "sexual", "violence"})


@dataclass(frozen=True)
class PolicySignals:
    recommended_action: str  # none|review|restrict|hide
    escalation: str  # none|watch|urgent|critical
    automation_eligible: bool
    automation_enabled: bool
    automation_blocked_reason: str | None
    matched_reasons: tuple[str, ...]
    config: ModerationPolicyConfig

    def to_dict(self) -> dict[str, Any]:
        return {
            "recommended_action": self.recommended_action,
            "escalation": self.escalation,
            "automation_eligible": self.automation_eligible,
            "automation_enabled": self.automation_enabled,
            "automation_blocked_reason": self.automation_blocked_reason,
            "matched_reasons": list(self.matched_reasons),
            "thresholds": {
                "min_priority_tier": self.config.auto_hide_min_priority_tier,
                "min_unique_reporters": self.config.auto_hide_min_unique_reporters,
                "allowed_reason_codes": sorted(self.config.auto_hide_allowed_reason_codes),
            },
        }


@dataclass(frozen=True)
class ModerationPolicyEvaluation:
    target: TargetKey
    moderation_status: str
    report_signals: ReportSignalSummary
    policy_signals: PolicySignals

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_kind": self.target.kind.value,
            "target_id": self.target.id,
            "moderation_status": self.moderation_status,
            "report_signals": self.report_signals.to_dict(),
            "policy_signals": self.policy_signals.to_dict(),
        }


def recommend(signals: ReportSignalSummary) -> tuple[str, str]:
    """Return (recommended_action, escalation) for a target's report signals."""
    if signals.open_reports <= 0:
        return "none", "none"

    has_high_risk_reason = any(code in HIGH_RISK_REASONS for code in signals.reason_codes)
    if signals.priority_tier == "critical" or (has_high_risk_reason and signals.unique_reporters >= 2):
        return "hide", "critical"
    if signals.priority_tier == "high":
        return "hide", "urgent"
    if signals.priority_tier == "medium":
        return "restrict", "urgent"
    return "review", "watch"


def _blocked_reason(
    signals: ReportSignalSummary,
    moderation_status: str,
    recommended_action: str,
    config: ModerationPolicyConfig,
) -> str | None:
    # First failing check wins
    if recommended_action != "hide":
        return "recommended_action_not_hide" if signals.open_reports > 0 else "no_open_reports"
    if moderation_status != "visible":
        return "already_moderated"
    if not is_tier_at_least(signals.priority_tier, config.auto_hide_min_priority_tier):
        return "priority_below_threshold"
    if signals.unique_reporters < config.auto_hide_min_unique_reporters:
        return "not_enough_unique_reporters"
    if not any(code in config.auto_hide_allowed_reason_codes for code in signals.reason_codes):
        return "reason_not_allowed"
    if config.auto_hide_actor_id is None:
        return "auto_hide_actor_missing"
    return None


def build_policy_signals(
    signals: ReportSignalSummary,
    moderation_status: str,
    config: ModerationPolicyConfig,
) -> PolicySignals:
    """
    Evaluate the recommendation and auto-hide eligibility for one target.

    The feature flag is the outermost gate: with auto-hide disabled the
    verdict is always ineligible with reason auto_hide_disabled.
    """
    recommended_action, escalation = recommend(signals)

    if not config.auto_hide_enabled:
        blocked_reason: str | None = "auto_hide_disabled"
    else:
        blocked_reason = _blocked_reason(signals, moderation_status, recommended_action, config)

    return PolicySignals(
        recommended_action=recommended_action,
        escalation=escalation,
        automation_eligible=blocked_reason is None,
        automation_enabled=config.auto_hide_enabled,
        automation_blocked_reason=blocked_reason,
        matched_reasons=tuple(signals.reason_codes),
        config=config,
    )


def build_auto_hide_reason(evaluation: ModerationPolicyEvaluation) -> str:
    """Reason text recorded when a scheduler auto-hides an eligible target."""
    signals = evaluation.report_signals
    reasons = ", ".join(signals.reason_codes) or "n/a"
    return (
        f"Preventive auto-hide by policy engine. priority={signals.priority_tier}; "
        f"reporters={signals.unique_reporters}; reasons={reasons}"
    )


class ModerationPolicyEngine:
    """Evaluates targets against an injected auto-hide policy."""

    def __init__(
        self,
        stores: ContentStoreRegistry,
        aggregator: ReportSignalAggregator,
        config: ModerationPolicyConfig,
    ) -> None:
        self.stores = stores
        self.aggregator = aggregator
        self.config = config

    async def evaluate(
        self,
        target_kind: Any,
        target_id: Any,
        config: ModerationPolicyConfig | None = None,
    ) -> ModerationPolicyEvaluation:
        """
        Evaluate one target.

        Args:
            target_kind: Content kind
            target_id: Content ID
            config: Per-call policy override, defaults to the engine's config

        Raises:
            ValidationError: Malformed kind or id
            NotFoundError: Target content does not exist
        """
        target = parse_target(target_kind, target_id)
        policy = config or self.config

        content = await self.stores.get(target.kind).find_by_id(target.id)
        if content is None:
            raise NotFoundError("Target content not found", details={"target": str(target)})

        moderation_status = normalize_moderation_status(content.moderation_status)
        report_signals = await self.aggregator.get_summary(target)
        policy_signals = build_policy_signals(report_signals, moderation_status, policy)

        policy_evaluations_total.labels(
            eligible=str(policy_signals.automation_eligible).lower(),
            blocked_reason=policy_signals.automation_blocked_reason or "none",
        ).inc()
        logger.info(
            f"Policy evaluated: target={target}, tier={report_signals.priority_tier}, "
            f"recommended={policy_signals.recommended_action}, eligible={policy_signals.automation_eligible}, "
            f"blocked_reason={policy_signals.automation_blocked_reason}"
        )

        return ModerationPolicyEvaluation(
            target=target,
            moderation_status=moderation_status,
            report_signals=report_signals,
            policy_signals=policy_signals,
        )
