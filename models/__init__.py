"""Database models."""

from models.content import Article, Book, Comment, Course, LiveEvent, Podcast, Review, Video
from models.moderation import ModerationEvent, UserModerationEvent
from models.report import ContentReport
from models.user import User

__all__ = [
    "User",
    "Article",
    "Video",
    "Course",
    "LiveEvent",
    "Podcast",
    "Book",
    "Comment",
    "Review",
    "ContentReport",
    "ModerationEvent",
    "UserModerationEvent",
]
