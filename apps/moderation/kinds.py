"""Content kinds, their ORM models and the typed constants used for dispatch."""

from enum import Enum
from typing import Any, NamedTuple

from apps.moderation.errors import ValidationError
from core.config import PRIORITY_TIERS, REPORT_REASONS
from models.content import Article, Book, Comment, Course, LiveEvent, Podcast, Review, Video


class ContentKind(str, Enum):
    ARTICLE = "article"
    VIDEO = "video"
    COURSE = "course"
    LIVE = "live"
    PODCAST = "podcast"
    BOOK = "book"
    COMMENT = "comment"
    REVIEW = "review"


BASE_KINDS: tuple[ContentKind, ...] = (
    ContentKind.ARTICLE,
    ContentKind.VIDEO,
    ContentKind.COURSE,
    ContentKind.LIVE,
    ContentKind.PODCAST,
    ContentKind.BOOK,
)
INTERACTION_KINDS: tuple[ContentKind, ...] = (ContentKind.COMMENT, ContentKind.REVIEW)
ALL_KINDS: tuple[ContentKind, ...] = BASE_KINDS + INTERACTION_KINDS

KIND_MODELS: dict[ContentKind, type[Any]] = {
    ContentKind.ARTICLE: Article,
    ContentKind.VIDEO: Video,
    ContentKind.COURSE: Course,
    ContentKind.LIVE: LiveEvent,
    ContentKind.PODCAST: Podcast,
    ContentKind.BOOK: Book,
    ContentKind.COMMENT: Comment,
    ContentKind.REVIEW: Review,
}

OWNER_FIELD: dict[ContentKind, str] = {kind: "creator_id" for kind in BASE_KINDS} | {
    kind: "user_id" for kind in INTERACTION_KINDS
}

# Column holding free text for comments and reviews
TEXT_FIELD: dict[ContentKind, str] = {ContentKind.COMMENT: "content", ContentKind.REVIEW: "review"}

MODERATION_STATUSES = ("visible", "hidden", "restricted")
PUBLISH_STATUSES = ("draft", "published", "archived")
MODERATION_ACTIONS = ("hide", "unhide", "restrict")
REPORT_STATUSES = ("open", "reviewed", "dismissed")

ACTION_TO_STATUS = {"hide": "hidden", "restrict": "restricted", "unhide": "visible"}
STATUS_TO_ACTION = {status: action for action, status in ACTION_TO_STATUS.items()}


class TargetKey(NamedTuple):
    """A (kind, id) pair identifying one moderatable item."""

    kind: ContentKind
    id: int

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


def is_base_kind(kind: ContentKind) -> bool:
    return kind in BASE_KINDS


def parse_kind(value: Any, field: str = "kind") -> ContentKind:
    """Validate a raw content kind."""
    if isinstance(value, ContentKind):
        return value
    try:
        return ContentKind(value)
    except ValueError:
        raise ValidationError(f"Invalid {field}", details={field: value}) from None


def parse_id(value: Any, field: str = "id") -> int:
    """Validate a raw identifier: a positive integer or its decimal string."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}", details={field: value})
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
    else:
        raise ValidationError(f"Invalid {field}", details={field: value})
    if parsed <= 0:
        raise ValidationError(f"Invalid {field}", details={field: value})
    return parsed


def parse_target(kind: Any, target_id: Any) -> TargetKey:
    return TargetKey(parse_kind(kind, "target_kind"), parse_id(target_id, "target_id"))


def _parse_choice(value: Any, choices: tuple[str, ...], field: str) -> str:
    if value not in choices:
        raise ValidationError(f"Invalid {field}", details={field: value, "allowed": list(choices)})
    return str(value)


def parse_moderation_status(value: Any) -> str:
    return _parse_choice(value, MODERATION_STATUSES, "moderation_status")


def parse_publish_status(value: Any) -> str:
    return _parse_choice(value, PUBLISH_STATUSES, "publish_status")


def parse_action(value: Any) -> str:
    return _parse_choice(value, MODERATION_ACTIONS, "action")


def parse_reason_code(value: Any) -> str:
    return _parse_choice(value, REPORT_REASONS, "reason_code")


def parse_report_status(value: Any) -> str:
    return _parse_choice(value, REPORT_STATUSES, "status")


def parse_priority_tier(value: Any) -> str:
    return _parse_choice(value, PRIORITY_TIERS, "priority_tier")


def normalize_moderation_status(value: Any) -> str:
    """Map stored status to a known one. Unknown or empty values read as visible."""
    if value == "hidden":
        return "hidden"
    if value == "restricted":
        return "restricted"
    return "visible"
