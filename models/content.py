"""Moderatable content models - six base kinds plus comments and reviews."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, SmallInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, BigIntPK, utcnow


class ModeratableMixin:
    """Moderation state shared by every content kind."""

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    moderation_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="visible", index=True
    )  # visible|hidden|restricted
    moderation_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    moderation_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    moderated_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    moderated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class BaseContentMixin(ModeratableMixin):
    """Publishable content owned by a creator."""

    creator_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(220), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft", index=True)  # draft|published|archived


class Article(BaseContentMixin, Base):
    __tablename__ = "articles"

    def __repr__(self) -> str:
        return f"<Article(id={self.id}, slug={self.slug})>"


class Video(BaseContentMixin, Base):
    __tablename__ = "videos"

    def __repr__(self) -> str:
        return f"<Video(id={self.id}, slug={self.slug})>"


class Course(BaseContentMixin, Base):
    __tablename__ = "courses"

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, slug={self.slug})>"


class LiveEvent(BaseContentMixin, Base):
    __tablename__ = "live_events"

    def __repr__(self) -> str:
        return f"<LiveEvent(id={self.id}, slug={self.slug})>"


class Podcast(BaseContentMixin, Base):
    __tablename__ = "podcasts"

    def __repr__(self) -> str:
        return f"<Podcast(id={self.id}, slug={self.slug})>"


class Book(BaseContentMixin, Base):
    __tablename__ = "books"

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, slug={self.slug})>"


class Comment(ModeratableMixin, Base):
    """User comment on a piece of content. No publish lifecycle."""

    __tablename__ = "comments"

    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    target_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    target_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<Comment(id={self.id}, user_id={self.user_id})>"


class Review(ModeratableMixin, Base):
    """Star rating with optional review text. No publish lifecycle."""

    __tablename__ = "reviews"

    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    target_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    target_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    rating: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    review: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, user_id={self.user_id}, rating={self.rating})>"
