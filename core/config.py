from dataclasses import dataclass

from pydantic_settings import BaseSettings, SettingsConfigDict

PRIORITY_TIERS = ("none", "low", "medium", "high", "critical")
REPORT_REASONS = ("spam", "abuse", "misinformation", "sexual", "violence", "hate", "scam", "copyright", "other")

DEFAULT_AUTO_HIDE_MIN_PRIORITY = "critical"
DEFAULT_AUTO_HIDE_MIN_UNIQUE_REPORTERS = 3
DEFAULT_AUTO_HIDE_ALLOWED_REASONS = frozenset({"scam", "hate", "sexual", "violence"})


@dataclass(frozen=True)
class ModerationPolicyConfig:
    """Automated preventive-hide policy, built once and passed to the policy engine."""

    auto_hide_enabled: bool = False
    auto_hide_actor_id: int | None = None
    auto_hide_min_priority_tier: str = DEFAULT_AUTO_HIDE_MIN_PRIORITY
    auto_hide_min_unique_reporters: int = DEFAULT_AUTO_HIDE_MIN_UNIQUE_REPORTERS
    auto_hide_allowed_reason_codes: frozenset[str] = DEFAULT_AUTO_HIDE_ALLOWED_REASONS


def _parse_actor_id(value: str) -> int | None:
    value = value.strip()
    if not value.isdigit() or int(value) <= 0:
        return None
    return int(value)


def _parse_allowed_reasons(value: str) -> frozenset[str]:
    allowed = frozenset(item.strip() for item in value.split(",") if item.strip() in REPORT_REASONS)
    return allowed or DEFAULT_AUTO_HIDE_ALLOWED_REASONS


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # API
    api_port: int = 8000

    # Security
    secret_key: str
    internal_client_secret: str  # HMAC secret for signed client->API requests

    # Admin
    admin_user: str = "admin"
    admin_pass: str = "changeme"

    # Reports
    report_rate_limit_seconds: int = 10

    # Moderation policy (raw values, normalized by moderation_policy())
    moderation_policy_auto_hide_enabled: str = ""
    moderation_policy_auto_hide_actor_id: str = ""
    moderation_policy_auto_hide_min_priority: str = DEFAULT_AUTO_HIDE_MIN_PRIORITY
    moderation_policy_auto_hide_min_unique_reporters: str = str(DEFAULT_AUTO_HIDE_MIN_UNIQUE_REPORTERS)
    moderation_policy_auto_hide_allowed_reasons: str = ""

    # Environment
    environment: str = "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def moderation_policy(self) -> ModerationPolicyConfig:
        """
        Build the auto-hide policy config.

        Invalid values fall back to the defaults instead of failing startup,
        so a typo in the environment can never loosen the policy.
        """
        min_priority = self.moderation_policy_auto_hide_min_priority.strip()
        if min_priority not in PRIORITY_TIERS:
            min_priority = DEFAULT_AUTO_HIDE_MIN_PRIORITY

        raw_min_reporters = self.moderation_policy_auto_hide_min_unique_reporters.strip()
        min_reporters = int(raw_min_reporters) if raw_min_reporters.isdigit() else 0
        if min_reporters <= 0:
            min_reporters = DEFAULT_AUTO_HIDE_MIN_UNIQUE_REPORTERS

        return ModerationPolicyConfig(
            auto_hide_enabled=self.moderation_policy_auto_hide_enabled.strip().lower() in ("true", "1"),
            auto_hide_actor_id=_parse_actor_id(self.moderation_policy_auto_hide_actor_id),
            auto_hide_min_priority_tier=min_priority,
            auto_hide_min_unique_reporters=min_reporters,
            auto_hide_allowed_reason_codes=_parse_allowed_reasons(self.moderation_policy_auto_hide_allowed_reasons),
        )


settings = Settings()
