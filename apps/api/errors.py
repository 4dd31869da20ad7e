"""Exception handlers rendering every API error as {"error": {code, message, details}}."""

import logging
import traceback
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.moderation.errors import ModerationError

logger = logging.getLogger(__name__)

STATUS_CODE_MAP = {
    400: "BAD_REQUEST",
    401: "AUTHENTICATION_FAILED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "UNPROCESSABLE_ENTITY",
    429: "RATE_LIMIT_EXCEEDED",
    500: "INTERNAL_ERROR",
}


def create_error_response(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"error": error}


async def moderation_exception_handler(request: Request, exc: ModerationError) -> JSONResponse:
    logger.warning(
        f"API error: {exc.message} (code={exc.error_code}, status={exc.status_code}, path={request.url.path})"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.error_code, exc.message, exc.details or None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Convert request body/query validation failures to the standard format."""
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", [])),
            "message": error.get("msg", "Invalid value"),
            "type": error.get("type", "value_error"),
        }
        for error in exc.errors()
    ]
    logger.info(f"Validation error: {len(errors)} field errors (path={request.url.path})")
    return JSONResponse(
        status_code=400,
        content=create_error_response("VALIDATION_ERROR", "Request validation failed", {"errors": errors}),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = str(exc.detail) if exc.detail else "An error occurred"
    if exc.status_code >= 500:
        logger.error(f"HTTP error {exc.status_code}: {message} (path={request.url.path})")
    else:
        logger.info(f"HTTP error {exc.status_code}: {message} (path={request.url.path})")
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(STATUS_CODE_MAP.get(exc.status_code, "ERROR"), message),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the traceback, return a generic message."""
    logger.error(f"Unhandled exception: {exc} (path={request.url.path})\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content=create_error_response("INTERNAL_ERROR", "An unexpected error occurred"),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ModerationError, moderation_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
