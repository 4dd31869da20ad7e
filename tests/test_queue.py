"""Tests for queue listing, single moderation actions and rollback."""

from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from apps.moderation.errors import ConflictError, InternalError, NotFoundError, ValidationError
from apps.moderation.kinds import ContentKind, TargetKey
from apps.moderation.queue import FAST_HIDE_REASON, QueueFilters, excerpt
from core.db import utcnow
from models.report import ContentReport


async def report_rows(session_factory, target: TargetKey) -> list[ContentReport]:
    async with session_factory() as session:
        result = await session.execute(
            select(ContentReport).where(
                ContentReport.target_kind == target.kind.value, ContentReport.target_id == target.id
            )
        )
        return list(result.scalars().all())


class TestExcerpt:
    def test_short_text_is_kept(self):
        assert excerpt("  hello   world ") == "hello world"

    def test_long_text_is_cut(self):
        result = excerpt("word " * 40)
        assert len(result) <= 80
        assert result.endswith("...")


class TestModerate:
    async def test_hide_resolves_open_reports(self, services, seed, session_factory, creator, admin):
        article = await seed.content(ContentKind.ARTICLE, creator.id)
        target = TargetKey(ContentKind.ARTICLE, article.id)
        await seed.reports(target, ["scam", "spam"])

        result = await services.queue.moderate(admin.id, "article", article.id, "hide", "  Scam links  ", "")

        assert result["changed"] is True
        assert result["from_status"] == "visible"
        assert result["to_status"] == "hidden"
        content = result["content"]
        assert content["moderation_status"] == "hidden"
        assert content["moderation_reason"] == "Scam links"
        assert content["moderation_note"] is None
        assert content["moderated_by"] == admin.id
        assert content["report_signals"]["open_reports"] == 0

        reports = await report_rows(session_factory, target)
        assert {report.status for report in reports} == {"reviewed"}
        assert {report.resolution_action for report in reports} == {"hide"}
        assert {report.reviewed_by for report in reports} == {admin.id}

        history = await services.queue.list_history("article", article.id)
        assert history.total == 1
        event = history.items[0]
        assert event["action"] == "hide"
        assert event["metadata"]["changed"] is True
        assert event["metadata"]["publish_status"] == "published"

    async def test_repeat_action_is_recorded_but_unchanged(self, services, seed, creator, admin):
        article = await seed.content(ContentKind.ARTICLE, creator.id)

        first = await services.queue.moderate(admin.id, "article", article.id, "restrict", "Borderline", "note")
        second = await services.queue.moderate(admin.id, "article", article.id, "restrict", "Borderline", "note")

        assert first["changed"] is True
        assert second["changed"] is False
        assert second["from_status"] == "restricted"
        history = await services.queue.list_history("article", article.id)
        assert history.total == 2
        assert [event["metadata"]["changed"] for event in history.items] == [False, True]

    async def test_note_change_counts_as_change(self, services, seed, creator, admin):
        article = await seed.content(ContentKind.ARTICLE, creator.id)
        await services.queue.moderate(admin.id, "article", article.id, "hide", "Spam", "first")

        result = await services.queue.moderate(admin.id, "article", article.id, "hide", "Spam", "second")

        assert result["changed"] is True

    async def test_unhide_comment(self, services, seed, creator, admin):
        comment = await seed.content(ContentKind.COMMENT, creator.id, moderation_status="hidden")

        result = await services.queue.moderate(admin.id, "comment", comment.id, "unhide", "Appeal accepted")

        assert result["from_status"] == "hidden"
        assert result["to_status"] == "visible"
        assert result["content"]["title"] == comment.content

    async def test_rejects_bad_input(self, services, seed, creator, admin):
        article = await seed.content(ContentKind.ARTICLE, creator.id)

        with pytest.raises(ValidationError):
            await services.queue.moderate(admin.id, "article", article.id, "hide", "   ")
        with pytest.raises(ValidationError):
            await services.queue.moderate(admin.id, "article", article.id, "hide", "x" * 501)
        with pytest.raises(ValidationError):
            await services.queue.moderate(admin.id, "article", article.id, "hide", "ok", "n" * 2001)
        with pytest.raises(ValidationError):
            await services.queue.moderate(admin.id, "article", article.id, "delete", "ok")
        with pytest.raises(ValidationError):
            await services.queue.moderate(admin.id, "essay", article.id, "hide", "ok")
        with pytest.raises(NotFoundError):
            await services.queue.moderate(admin.id, "article", article.id + 1000, "hide", "ok")

        assert (await services.queue.list_history("article", article.id)).total == 0

    async def test_fast_hide_defaults_reason(self, services, seed, creator, admin):
        video = await seed.content(ContentKind.VIDEO, creator.id)

        result = await services.queue.fast_hide(admin.id, "video", video.id, note="Live incident")

        assert result["to_status"] == "hidden"
        assert result["content"]["moderation_reason"] == FAST_HIDE_REASON
        history = await services.queue.list_history("video", video.id)
        assert history.items[0]["metadata"]["source"] == "fast_track"

    async def test_fast_hide_keeps_given_reason(self, services, seed, creator, admin):
        video = await seed.content(ContentKind.VIDEO, creator.id)

        result = await services.queue.fast_hide(admin.id, "video", video.id, reason_text="Graphic violence")

        assert result["content"]["moderation_reason"] == "Graphic violence"

    async def test_failed_write_applies_nothing(self, services, seed, session_factory, creator, admin, monkeypatch):
        article = await seed.content(ContentKind.ARTICLE, creator.id)
        target = TargetKey(ContentKind.ARTICLE, article.id)
        await seed.reports(target, ["scam"])

        async def broken_append(*args, **kwargs):
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(services.queue.events, "append", broken_append)

        with pytest.raises(InternalError):
            await services.queue.moderate(admin.id, "article", article.id, "hide", "Scam")

        content = await services.stores.get(ContentKind.ARTICLE).find_by_id(article.id)
        assert content.moderation_status == "visible"
        assert content.moderation_reason is None
        assert {report.status for report in await report_rows(session_factory, target)} == {"open"}


class TestListQueue:
    async def seed_queue(self, seed, creator):
        article = await seed.content(ContentKind.ARTICLE, creator.id, title="Crypto giveaway")
        video = await seed.content(ContentKind.VIDEO, creator.id, title="Cooking basics")
        comment = await seed.content(ContentKind.COMMENT, creator.id, content="Buy followers now " * 10)
        await seed.content(ContentKind.BOOK, creator.id, title="Draft notes", status="draft")

        await seed.reports(TargetKey(ContentKind.ARTICLE, article.id), ["scam", "scam"])
        await seed.reports(TargetKey(ContentKind.COMMENT, comment.id), ["spam"], first_reporter=2000)
        return article, video, comment

    async def test_sorted_by_priority(self, services, seed, creator):
        article, video, comment = await self.seed_queue(seed, creator)

        page = await services.queue.list_queue()

        assert page.total == 4
        assert [(item["target_kind"], item["id"]) for item in page.items[:2]] == [
            ("article", article.id),
            ("comment", comment.id),
        ]
        assert page.items[0]["report_signals"]["priority_score"] == 2 + 2 + 5
        comment_item = page.items[1]
        assert len(comment_item["title"]) <= 80
        assert comment_item["owner_id"] == creator.id

    async def test_flagged_only_and_min_priority(self, services, seed, creator):
        article, _, comment = await self.seed_queue(seed, creator)

        flagged = await services.queue.list_queue(QueueFilters(flagged_only=True))
        high = await services.queue.list_queue(QueueFilters(min_report_priority="high"))

        assert {item["id"] for item in flagged.items} == {article.id, comment.id}
        assert [item["id"] for item in high.items] == [article.id]

    async def test_non_published_filter_excludes_interactions(self, services, seed, creator):
        await self.seed_queue(seed, creator)

        drafts = await services.queue.list_queue(QueueFilters(publish_status="draft"))
        comments = await services.queue.list_queue(QueueFilters(kind="comment", publish_status="draft"))

        assert [item["target_kind"] for item in drafts.items] == ["book"]
        assert comments.total == 0
        assert comments.pages == 1

    async def test_search_and_creator_filters(self, services, seed, creator):
        await self.seed_queue(seed, creator)
        other = await seed.user("creator")
        await seed.content(ContentKind.ARTICLE, other.id, title="Crypto tips")

        found = await services.queue.list_queue(QueueFilters(search="CRYPTO"))
        mine = await services.queue.list_queue(QueueFilters(search="crypto", creator_id=creator.id))

        assert found.total == 2
        assert mine.total == 1

    async def test_pagination(self, services, seed, creator):
        await self.seed_queue(seed, creator)

        page = await services.queue.list_queue(page=2, limit=3)

        assert page.to_dict()["pagination"] == {"page": 2, "limit": 3, "total": 4, "pages": 2}
        assert len(page.items) == 1

    async def test_limit_is_capped(self, services):
        page = await services.queue.list_queue(limit=500)
        assert page.limit == 100

    async def test_invalid_filters(self, services):
        with pytest.raises(ValidationError):
            await services.queue.list_queue(QueueFilters(kind="essay"))
        with pytest.raises(ValidationError):
            await services.queue.list_queue(QueueFilters(min_report_priority="severe"))

    async def test_equal_scores_order_by_latest_report(self, services, seed, creator):
        now = utcnow()
        recently_reported = await seed.content(ContentKind.ARTICLE, creator.id, updated_at=now - timedelta(days=3))
        earlier_reported = await seed.content(ContentKind.ARTICLE, creator.id, updated_at=now)
        await seed.report(3001, TargetKey(ContentKind.ARTICLE, recently_reported.id), "spam", created_at=now)
        await seed.report(
            3002, TargetKey(ContentKind.ARTICLE, earlier_reported.id), "spam", created_at=now - timedelta(days=1)
        )

        page = await services.queue.list_queue(QueueFilters(flagged_only=True))

        scores = {item["report_signals"]["priority_score"] for item in page.items}
        assert len(scores) == 1
        assert [item["id"] for item in page.items] == [recently_reported.id, earlier_reported.id]

    async def test_equal_scores_and_report_times_order_by_update(self, services, seed, creator):
        now = utcnow()
        reported_at = now - timedelta(hours=6)
        fresh = await seed.content(ContentKind.VIDEO, creator.id, updated_at=now - timedelta(hours=1))
        stale = await seed.content(ContentKind.ARTICLE, creator.id, updated_at=now - timedelta(days=2))
        await seed.report(3001, TargetKey(ContentKind.ARTICLE, stale.id), "spam", created_at=reported_at)
        await seed.report(3002, TargetKey(ContentKind.VIDEO, fresh.id), "spam", created_at=reported_at)

        page = await services.queue.list_queue(QueueFilters(flagged_only=True))

        assert [(item["target_kind"], item["id"]) for item in page.items] == [
            ("video", fresh.id),
            ("article", stale.id),
        ]


class TestRollback:
    async def hide_and_get_event(self, services, article_id: int, admin_id: int) -> int:
        await services.queue.moderate(admin_id, "article", article_id, "hide", "Looked like spam")
        history = await services.queue.list_history("article", article_id)
        return history.items[0]["id"]

    async def test_restores_previous_status(self, services, seed, session_factory, creator, admin):
        article = await seed.content(ContentKind.ARTICLE, creator.id)
        target = TargetKey(ContentKind.ARTICLE, article.id)
        event_id = await self.hide_and_get_event(services, article.id, admin.id)
        await seed.report(4001, target, "spam")

        result = await services.queue.rollback(
            admin.id, "article", article.id, event_id, "False positive", mark_false_positive=True
        )

        assert result["changed"] is True
        assert result["from_status"] == "hidden"
        assert result["to_status"] == "visible"
        assert result["rollback"] == {"event_id": event_id, "restored_status": "visible", "newer_events": 0}
        assert result["content"]["moderation_reason"] == "False positive"

        history = await services.queue.list_history("article", article.id)
        assert history.total == 2
        latest = history.items[0]
        assert latest["action"] == "unhide"
        assert latest["metadata"]["source"] == "rollback"
        assert latest["metadata"]["rollback_of_event_id"] == event_id
        assert latest["metadata"]["false_positive"] is True
        assert latest["metadata"]["resolved_reports"] == 0
        assert {report.status for report in await report_rows(session_factory, target)} == {"open"}

    async def test_review_flags_newer_events(self, services, seed, creator, admin):
        article = await seed.content(ContentKind.ARTICLE, creator.id)
        event_id = await self.hide_and_get_event(services, article.id, admin.id)
        await services.queue.moderate(admin.id, "article", article.id, "restrict", "Downgraded")

        review = await services.queue.rollback_review("article", article.id, event_id)

        assert review["event"]["id"] == event_id
        assert review["current_status"] == "restricted"
        assert review["restore_status"] == "visible"
        assert review["rollback_action"] == "unhide"
        assert review["would_change"] is True
        assert review["newer_events"] == 1
        assert review["requires_confirm"] is True

    async def test_superseded_event_needs_confirm(self, services, seed, creator, admin):
        article = await seed.content(ContentKind.ARTICLE, creator.id)
        event_id = await self.hide_and_get_event(services, article.id, admin.id)
        await services.queue.moderate(admin.id, "article", article.id, "restrict", "Downgraded")

        with pytest.raises(ConflictError):
            await services.queue.rollback(admin.id, "article", article.id, event_id, "Undo hide")
        assert (await services.queue.list_history("article", article.id)).total == 2

        result = await services.queue.rollback(admin.id, "article", article.id, event_id, "Undo hide", confirm=True)

        assert result["to_status"] == "visible"
        assert result["rollback"]["newer_events"] == 1

    async def test_rejects_unknown_or_foreign_event(self, services, seed, creator, admin):
        article = await seed.content(ContentKind.ARTICLE, creator.id)
        other = await seed.content(ContentKind.ARTICLE, creator.id)
        foreign_event = await self.hide_and_get_event(services, other.id, admin.id)

        with pytest.raises(NotFoundError):
            await services.queue.rollback_review("article", article.id, foreign_event)
        with pytest.raises(NotFoundError):
            await services.queue.rollback(admin.id, "article", article.id, 999999, "Undo")
        with pytest.raises(ValidationError):
            await services.queue.rollback(admin.id, "article", article.id, "abc", "Undo")
        with pytest.raises(ValidationError):
            await services.queue.rollback(admin.id, "article", other.id, foreign_event, "  ")
