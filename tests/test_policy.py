"""Tests for the moderation policy engine and its configuration."""

import pytest

from apps.moderation.errors import NotFoundError, ValidationError
from apps.moderation.kinds import ContentKind, TargetKey
from apps.moderation.policy import build_auto_hide_reason, build_policy_signals, recommend
from apps.moderation.signals import EMPTY_SUMMARY, build_report_signal_summary
from core.config import ModerationPolicyConfig, Settings

ENABLED = ModerationPolicyConfig(auto_hide_enabled=True, auto_hide_actor_id=99)


def summary(reasons: list[str], reporters: int | None = None):
    return build_report_signal_summary(len(reasons), reporters or len(reasons), None, reasons)


class TestRecommendation:
    def test_no_reports(self):
        assert recommend(EMPTY_SUMMARY) == ("none", "none")

    def test_low_priority_is_review(self):
        assert recommend(summary(["other"])) == ("review", "watch")

    def test_medium_priority_is_restrict(self):
        assert recommend(summary(["spam"])) == ("restrict", "urgent")

    def test_high_priority_is_hide(self):
        # 3 + 3 + 2 = 8
        assert recommend(summary(["spam"] * 3)) == ("hide", "urgent")

    def test_high_risk_reason_with_two_reporters_escalates(self):
        # 2 + 2 + 4 = 8, high tier, but a hate report from two people is critical
        assert recommend(summary(["hate", "hate"])) == ("hide", "critical")

    def test_critical_priority(self):
        assert recommend(summary(["spam"] * 5)) == ("hide", "critical")


class TestEligibility:
    def test_scam_reports_below_default_threshold(self):
        """Three scam reports reach high, short of the default critical threshold."""
        signals = build_policy_signals(summary(["scam"] * 3), "visible", ENABLED)

        assert signals.recommended_action == "hide"
        assert signals.automation_eligible is False
        assert signals.automation_blocked_reason == "priority_below_threshold"

    def test_scam_reports_eligible_with_lowered_threshold(self):
        config = ModerationPolicyConfig(auto_hide_enabled=True, auto_hide_actor_id=99, auto_hide_min_priority_tier="high")

        signals = build_policy_signals(summary(["scam"] * 3), "visible", config)

        assert signals.automation_eligible is True
        assert signals.automation_blocked_reason is None
        assert signals.matched_reasons == ("scam",)

    def test_disabled_flag_overrides_everything(self):
        config = ModerationPolicyConfig(auto_hide_enabled=False, auto_hide_actor_id=99)

        for reasons, status in [(["scam"] * 10, "visible"), ([], "visible"), (["scam"] * 10, "hidden")]:
            signals = build_policy_signals(summary(reasons) if reasons else EMPTY_SUMMARY, status, config)
            assert signals.automation_eligible is False
            assert signals.automation_enabled is False
            assert signals.automation_blocked_reason == "auto_hide_disabled"

    def test_no_double_auto_hide(self):
        signals = build_policy_signals(summary(["scam"] * 5), "hidden", ENABLED)

        assert summary(["scam"] * 5).priority_tier == "critical"
        assert signals.automation_eligible is False
        assert signals.automation_blocked_reason == "already_moderated"

    def test_no_open_reports(self):
        signals = build_policy_signals(EMPTY_SUMMARY, "visible", ENABLED)
        assert signals.automation_blocked_reason == "no_open_reports"

    def test_recommendation_not_hide(self):
        signals = build_policy_signals(summary(["spam"]), "visible", ENABLED)
        assert signals.automation_blocked_reason == "recommended_action_not_hide"

    def test_not_enough_unique_reporters(self):
        # 5 + 2 + 5 = 12 from only two people
        signals = build_policy_signals(summary(["scam"] * 5, reporters=2), "visible", ENABLED)
        assert signals.automation_blocked_reason == "not_enough_unique_reporters"

    def test_reason_not_allowed(self):
        # 6 + 6 + 2 = 14, but spam is not in the allowed set
        signals = build_policy_signals(summary(["spam"] * 6), "visible", ENABLED)
        assert signals.automation_blocked_reason == "reason_not_allowed"

    def test_actor_missing(self):
        config = ModerationPolicyConfig(auto_hide_enabled=True, auto_hide_actor_id=None)
        signals = build_policy_signals(summary(["scam"] * 4), "visible", config)
        assert signals.automation_blocked_reason == "auto_hide_actor_missing"

    def test_thresholds_in_output(self):
        data = build_policy_signals(EMPTY_SUMMARY, "visible", ENABLED).to_dict()
        assert data["thresholds"] == {
            "min_priority_tier": "critical",
            "min_unique_reporters": 3,
            "allowed_reason_codes": ["hate", "scam", "sexual", "violence"],
        }


class TestPolicyEngine:
    async def test_evaluate_target(self, services, seed, creator):
        article = await seed.content(ContentKind.ARTICLE, creator.id)
        await seed.reports(TargetKey(ContentKind.ARTICLE, article.id), ["scam"] * 4)

        evaluation = await services.policy.evaluate("article", article.id, config=ENABLED)
        data = evaluation.to_dict()

        assert data["target_kind"] == "article"
        assert data["moderation_status"] == "visible"
        assert data["report_signals"]["priority_tier"] == "critical"
        assert data["policy_signals"]["automation_eligible"] is True
        assert "priority=critical" in build_auto_hide_reason(evaluation)
        assert "reporters=4" in build_auto_hide_reason(evaluation)

    async def test_uses_injected_config(self, services, seed, creator):
        article = await seed.content(ContentKind.ARTICLE, creator.id)
        await seed.reports(TargetKey(ContentKind.ARTICLE, article.id), ["scam"] * 4)

        evaluation = await services.policy.evaluate("article", article.id)

        assert evaluation.policy_signals.automation_blocked_reason == "auto_hide_disabled"

    async def test_missing_target(self, services):
        with pytest.raises(NotFoundError):
            await services.policy.evaluate("video", 12345)

    async def test_malformed_target(self, services):
        with pytest.raises(ValidationError):
            await services.policy.evaluate("article", "abc")


class TestPolicyConfig:
    def make_settings(self, **overrides) -> Settings:
        return Settings(database_url="sqlite+aiosqlite://", secret_key="s", internal_client_secret="c", **overrides)

    def test_defaults(self):
        assert self.make_settings().moderation_policy() == ModerationPolicyConfig()

    def test_parses_values(self):
        policy = self.make_settings(
            moderation_policy_auto_hide_enabled="TRUE",
            moderation_policy_auto_hide_actor_id="42",
            moderation_policy_auto_hide_min_priority="high",
            moderation_policy_auto_hide_min_unique_reporters="5",
            moderation_policy_auto_hide_allowed_reasons="scam, spam",
        ).moderation_policy()

        assert policy.auto_hide_enabled is True
        assert policy.auto_hide_actor_id == 42
        assert policy.auto_hide_min_priority_tier == "high"
        assert policy.auto_hide_min_unique_reporters == 5
        assert policy.auto_hide_allowed_reason_codes == frozenset({"scam", "spam"})

    def test_invalid_values_fall_back(self):
        policy = self.make_settings(
            moderation_policy_auto_hide_enabled="yes please",
            moderation_policy_auto_hide_actor_id="abc",
            moderation_policy_auto_hide_min_priority="extreme",
            moderation_policy_auto_hide_min_unique_reporters="0",
            moderation_policy_auto_hide_allowed_reasons="bogus",
        ).moderation_policy()

        assert policy == ModerationPolicyConfig()
