from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from apps.moderation.controls import CreatorControlService
from apps.moderation.events import ModerationEventStore
from apps.moderation.policy import ModerationPolicyEngine
from apps.moderation.queue import ModerationQueueService
from apps.moderation.reports import ReportRepository, ReportService
from apps.moderation.signals import ReportSignalAggregator
from apps.moderation.stores import ContentStoreRegistry, build_content_stores
from apps.moderation.trust import CreatorTrustScorer
from apps.moderation.users import UserRepository
from core.config import ModerationPolicyConfig


@dataclass
class ModerationServices:
    """Wired moderation components sharing one session factory."""

    stores: ContentStoreRegistry
    reports: ReportService
    aggregator: ReportSignalAggregator
    policy: ModerationPolicyEngine
    trust: CreatorTrustScorer
    controls: CreatorControlService
    queue: ModerationQueueService


def build_moderation_services(
    session_factory: async_sessionmaker[AsyncSession],
    policy_config: ModerationPolicyConfig,
) -> ModerationServices:
    stores = build_content_stores(session_factory)
    report_repository = ReportRepository(session_factory)
    events = ModerationEventStore(session_factory)
    users = UserRepository(session_factory)
    aggregator = ReportSignalAggregator(report_repository)

    return ModerationServices(
        stores=stores,
        reports=ReportService(report_repository, stores),
        aggregator=aggregator,
        policy=ModerationPolicyEngine(stores, aggregator, policy_config),
        trust=CreatorTrustScorer(stores, aggregator, events, users),
        controls=CreatorControlService(users, events, session_factory),
        queue=ModerationQueueService(stores, report_repository, events, aggregator, session_factory),
    )
