"""Tests for bulk moderation and bulk rollback guardrails and partial failure handling."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from apps.moderation.errors import ValidationError
from apps.moderation.kinds import ContentKind
from apps.moderation.queue import BULK_CONFIRM_THRESHOLD, BULK_MAX_ITEMS
from models.moderation import ModerationEvent


async def event_count(session_factory) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(ModerationEvent))).scalar_one()


async def seed_articles(seed, owner_id: int, count: int) -> list[dict]:
    items = []
    for _ in range(count):
        article = await seed.content(ContentKind.ARTICLE, owner_id)
        items.append({"target_kind": "article", "target_id": article.id})
    return items


class TestBulkModerate:
    async def test_duplicates_are_skipped(self, services, seed, creator, admin):
        article = await seed.content(ContentKind.ARTICLE, creator.id)
        video = await seed.content(ContentKind.VIDEO, creator.id)
        items = [
            {"target_kind": "article", "target_id": article.id},
            {"target_kind": "article", "target_id": str(article.id)},
            {"target_kind": "video", "target_id": video.id},
        ]

        result = await services.queue.bulk_moderate(admin.id, "hide", "Coordinated spam", items)

        assert result["summary"] == {"requested": 3, "processed": 2, "succeeded": 2, "failed": 0, "changed": 2}
        assert result["guardrails"] == {
            "max_items": BULK_MAX_ITEMS,
            "confirm_threshold": BULK_CONFIRM_THRESHOLD,
            "confirm_applied": False,
            "duplicates_skipped": 1,
        }
        assert [item["target_kind"] for item in result["items"]] == ["article", "video"]

    async def test_oversized_batch_is_rejected_without_writes(self, services, seed, session_factory, creator, admin):
        items = await seed_articles(seed, creator.id, 1)
        items = items * (BULK_MAX_ITEMS + 1)

        with pytest.raises(ValidationError):
            await services.queue.bulk_moderate(admin.id, "hide", "Spam", items, confirm=True)

        assert await event_count(session_factory) == 0

    async def test_confirmation_required_at_threshold(self, services, seed, session_factory, creator, admin):
        items = await seed_articles(seed, creator.id, BULK_CONFIRM_THRESHOLD)

        with pytest.raises(ValidationError):
            await services.queue.bulk_moderate(admin.id, "hide", "Spam", items)
        assert await event_count(session_factory) == 0

        result = await services.queue.bulk_moderate(admin.id, "hide", "Spam", items, confirm=True)

        assert result["summary"]["succeeded"] == BULK_CONFIRM_THRESHOLD
        assert result["guardrails"]["confirm_applied"] is True
        assert await event_count(session_factory) == BULK_CONFIRM_THRESHOLD

    async def test_duplicates_do_not_count_towards_confirmation(self, services, seed, creator, admin):
        items = await seed_articles(seed, creator.id, BULK_CONFIRM_THRESHOLD - 1)

        result = await services.queue.bulk_moderate(admin.id, "restrict", "Spam", items + items[:3])

        assert result["summary"]["processed"] == BULK_CONFIRM_THRESHOLD - 1
        assert result["guardrails"]["duplicates_skipped"] == 3

    async def test_partial_failure(self, services, seed, creator, admin):
        first, last = await seed_articles(seed, creator.id, 2)
        items = [first, {"target_kind": "article", "target_id": 999999}, last]

        result = await services.queue.bulk_moderate(admin.id, "hide", "Spam", items)

        assert result["summary"]["succeeded"] == 2
        assert result["summary"]["failed"] == 1
        failure = result["items"][1]
        assert failure["success"] is False
        assert failure["status_code"] == 404
        assert result["items"][2]["success"] is True

    async def test_malformed_item_fails_whole_batch(self, services, seed, session_factory, creator, admin):
        items = await seed_articles(seed, creator.id, 2)
        items.append({"target_kind": "article", "target_id": "abc"})

        with pytest.raises(ValidationError) as exc_info:
            await services.queue.bulk_moderate(admin.id, "hide", "Spam", items)

        assert exc_info.value.details == {"index": 2}
        assert await event_count(session_factory) == 0

    @pytest.mark.parametrize(
        "action,reason,items",
        [
            ("hide", "Spam", []),
            ("hide", "Spam", "article:1"),
            ("hide", "", [{"target_kind": "article", "target_id": 1}]),
            ("purge", "Spam", [{"target_kind": "article", "target_id": 1}]),
            ("hide", "Spam", [["article", 1]]),
        ],
    )
    async def test_rejects_bad_requests(self, services, admin, action, reason, items):
        with pytest.raises(ValidationError):
            await services.queue.bulk_moderate(admin.id, action, reason, items)

    async def test_write_failure_is_reported_per_item(self, services, seed, creator, admin, monkeypatch):
        items = await seed_articles(seed, creator.id, 2)

        async def broken_append(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(services.queue.events, "append", broken_append)

        result = await services.queue.bulk_moderate(admin.id, "hide", "Spam", items)

        assert result["summary"]["failed"] == 2
        assert {item["status_code"] for item in result["items"]} == {500}


async def hide_all(services, admin_id: int, items: list[dict]) -> list[dict]:
    """Hide each article and return rollback items pointing at the hide events."""
    await services.queue.bulk_moderate(admin_id, "hide", "Spam wave", items, confirm=True)
    rollback_items = []
    for item in items:
        history = await services.queue.list_history("article", item["target_id"])
        rollback_items.append({**item, "event_id": history.items[0]["id"]})
    return rollback_items


class TestBulkRollback:
    async def test_rolls_back_and_skips_duplicates(self, services, seed, creator, admin):
        items = await hide_all(services, admin.id, await seed_articles(seed, creator.id, 2))
        missing = {"target_kind": "article", "target_id": items[0]["target_id"], "event_id": 999999}

        result = await services.queue.bulk_rollback(
            admin.id, "False positive wave", items + [items[0], missing], mark_false_positive=True
        )

        assert result["summary"] == {"requested": 4, "processed": 3, "succeeded": 2, "failed": 1, "changed": 2}
        assert result["guardrails"]["duplicates_skipped"] == 1
        assert [item["to_status"] for item in result["items"][:2]] == ["visible", "visible"]
        assert result["items"][2]["event_id"] == 999999
        assert result["items"][2]["status_code"] == 404

        history = await services.queue.list_history("article", items[0]["target_id"])
        metadata = history.items[0]["metadata"]
        assert metadata["source"] == "rollback"
        assert metadata["bulk"] is True
        assert metadata["false_positive"] is True

    async def test_superseded_items_fail_without_confirm(self, services, seed, creator, admin):
        items = await hide_all(services, admin.id, await seed_articles(seed, creator.id, 2))
        await services.queue.moderate(admin.id, "article", items[0]["target_id"], "restrict", "Downgraded")

        result = await services.queue.bulk_rollback(admin.id, "Undo", items)

        assert [item["success"] for item in result["items"]] == [False, True]
        assert result["items"][0]["status_code"] == 409

    async def test_confirmation_required_at_threshold(self, services, seed, session_factory, creator, admin):
        items = await hide_all(services, admin.id, await seed_articles(seed, creator.id, BULK_CONFIRM_THRESHOLD))
        before = await event_count(session_factory)

        with pytest.raises(ValidationError) as exc_info:
            await services.queue.bulk_rollback(admin.id, "Undo", items)

        assert exc_info.value.details["confirm_threshold"] == BULK_CONFIRM_THRESHOLD
        assert await event_count(session_factory) == before

        result = await services.queue.bulk_rollback(admin.id, "Undo", items, confirm=True)
        assert result["summary"]["succeeded"] == BULK_CONFIRM_THRESHOLD

    async def test_oversized_batch_is_rejected(self, services, admin):
        items = [{"target_kind": "article", "target_id": 1, "event_id": index} for index in range(1, BULK_MAX_ITEMS + 2)]

        with pytest.raises(ValidationError):
            await services.queue.bulk_rollback(admin.id, "Undo", items, confirm=True)

    async def test_item_without_event_id_fails_whole_batch(self, services, admin):
        items = [{"target_kind": "article", "target_id": 1, "event_id": 5}, {"target_kind": "article", "target_id": 2}]

        with pytest.raises(ValidationError) as exc_info:
            await services.queue.bulk_rollback(admin.id, "Undo", items)

        assert exc_info.value.details == {"index": 1}
