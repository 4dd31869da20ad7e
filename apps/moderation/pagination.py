import math
from dataclasses import dataclass
from typing import Any

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 25
MAX_LIMIT = 100


def normalize_page(page: int | None, limit: int | None) -> tuple[int, int]:
    """Clamp raw pagination input. Missing or non-positive values use the defaults."""
    page_no = page if page and page > 0 else DEFAULT_PAGE
    page_size = min(limit, MAX_LIMIT) if limit and limit > 0 else DEFAULT_LIMIT
    return page_no, page_size


@dataclass
class Page:
    items: list[Any]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return max(1, math.ceil(self.total / self.limit))

    @classmethod
    def build(cls, items: list[Any], page: int, limit: int, total: int) -> "Page":
        return cls(items=items, page=page, limit=limit, total=total)

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": self.items,
            "pagination": {"page": self.page, "limit": self.limit, "total": self.total, "pages": self.pages},
        }
