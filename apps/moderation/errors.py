"""Moderation error taxonomy.

Every error carries:
- message: Human-readable error message
- error_code: Machine-readable error code (e.g., "NOT_FOUND")
- details: Optional dictionary with additional context
- status_code: HTTP status the API layer responds with
"""

from typing import Any


class ModerationError(Exception):
    """Base class for moderation engine errors."""

    status_code: int = 500
    default_error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        result: dict[str, Any] = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(ModerationError):
    """Malformed input, invalid enum value or violated bulk guardrail (HTTP 400)."""

    status_code = 400
    default_error_code = "VALIDATION_ERROR"


class NotFoundError(ModerationError):
    """Target content or creator does not exist (HTTP 404)."""

    status_code = 404
    default_error_code = "NOT_FOUND"


class ConflictError(ModerationError):
    """Request conflicts with current state, e.g. reporting one's own content (HTTP 409)."""

    status_code = 409
    default_error_code = "CONFLICT"


class InternalError(ModerationError):
    """Unexpected store failure. The message shown to callers stays generic (HTTP 500)."""

    status_code = 500
    default_error_code = "INTERNAL_ERROR"
