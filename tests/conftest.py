"""Shared fixtures: a throwaway SQLite database, wired services and seed helpers."""

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test-unused.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("INTERNAL_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("ADMIN_USER", "admin")
os.environ.setdefault("ADMIN_PASS", "admin-pass")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime
from typing import Any

import pytest

import models  # noqa: F401  (registers every table on Base.metadata)
from apps.moderation.kinds import KIND_MODELS, ContentKind, TargetKey, is_base_kind
from apps.moderation.services import build_moderation_services
from core.config import ModerationPolicyConfig
from core.db import Base, create_engine, create_session_factory, utcnow
from models.moderation import ModerationEvent, UserModerationEvent
from models.report import ContentReport
from models.user import User


class Seeder:
    """Writes fixture rows straight to the database."""

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._counter = 0

    async def _add(self, obj: Any) -> Any:
        async with self.session_factory() as session:
            session.add(obj)
            await session.commit()
            await session.refresh(obj)
            return obj

    async def user(self, role: str = "creator", **fields: Any) -> User:
        self._counter += 1
        fields.setdefault("username", f"{role}{self._counter}")
        fields.setdefault("name", f"User {self._counter}")
        return await self._add(User(role=role, **fields))

    async def content(self, kind: ContentKind, owner_id: int, **fields: Any) -> Any:
        self._counter += 1
        model = KIND_MODELS[kind]
        if is_base_kind(kind):
            fields.setdefault("title", f"{kind.value.title()} {self._counter}")
            fields.setdefault("slug", f"{kind.value}-{self._counter}")
            fields.setdefault("status", "published")
            fields["creator_id"] = owner_id
        elif kind == ContentKind.COMMENT:
            fields.setdefault("content", f"Comment {self._counter}")
            fields.setdefault("target_kind", "article")
            fields.setdefault("target_id", 1)
            fields["user_id"] = owner_id
        else:
            fields.setdefault("rating", 4)
            fields.setdefault("review", f"Review {self._counter}")
            fields.setdefault("target_kind", "course")
            fields.setdefault("target_id", 1)
            fields["user_id"] = owner_id
        return await self._add(model(**fields))

    async def report(
        self,
        reporter_id: int,
        target: TargetKey,
        reason_code: str = "spam",
        status: str = "open",
        created_at: datetime | None = None,
    ) -> ContentReport:
        return await self._add(
            ContentReport(
                reporter_id=reporter_id,
                target_kind=target.kind.value,
                target_id=target.id,
                reason_code=reason_code,
                status=status,
                created_at=created_at or utcnow(),
            )
        )

    async def reports(self, target: TargetKey, reason_codes: list[str], first_reporter: int = 1000) -> None:
        """One open report per reason code, each from a distinct reporter."""
        for offset, reason_code in enumerate(reason_codes):
            await self.report(first_reporter + offset, target, reason_code)

    async def event(self, target: TargetKey, created_at: datetime | None = None, action: str = "hide") -> None:
        await self._add(
            ModerationEvent(
                target_kind=target.kind.value,
                target_id=target.id,
                actor_id=1,
                action=action,
                from_status="visible",
                to_status="hidden",
                reason_text="seeded",
                created_at=created_at or utcnow(),
            )
        )

    async def control_event(self, user_id: int, created_at: datetime | None = None) -> None:
        await self._add(
            UserModerationEvent(
                user_id=user_id,
                actor_id=1,
                action="creator_control",
                reason_text="seeded",
                metadata_={"control_action": "set_cooldown"},
                created_at=created_at or utcnow(),
            )
        )


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'moderation.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def policy_config():
    return ModerationPolicyConfig()


@pytest.fixture
def services(session_factory, policy_config):
    return build_moderation_services(session_factory, policy_config)


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
async def creator(seed):
    return await seed.user("creator")


@pytest.fixture
async def admin(seed):
    return await seed.user("admin")
