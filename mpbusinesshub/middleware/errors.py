"""Exception handlers producing the JSON error envelope.

Every error response has the shape
``{"status": "error", "message": ..., "errors"?: {...}}``.
"""

import logging
from typing import Dict, List
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

_VALUE_ERROR_PREFIX = "Value error, "


class ErrorResponse:
    """Standardized error response format."""

    @staticmethod
    def create(
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        errors: Dict[str, List[str]] | None = None,
        headers: Dict[str, str] | None = None,
        **extra,
    ) -> JSONResponse:
        """Create error response.

        Args:
            message: Human-readable error message
            status_code: HTTP status code
            errors: Field name to list of messages
            headers: Extra response headers
            **extra: Additional top-level fields (e.g. ``locked_until``)

        Returns:
            JSONResponse with error information
        """
        content = {"status": "error", "message": message}
        if errors:
            content["errors"] = errors
        content.update(extra)
        return JSONResponse(status_code=status_code, content=content, headers=headers)


def validation_errors(exc: RequestValidationError) -> Dict[str, List[str]]:
    """Map pydantic errors to ``{field: [messages]}``."""
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        field = ".".join(loc) or "request"
        message = str(error.get("msg", "Invalid value"))
        if message.startswith(_VALUE_ERROR_PREFIX):
            message = message[len(_VALUE_ERROR_PREFIX):]
        errors.setdefault(field, []).append(message)
    return errors


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTPException raised by routes and dependencies.

    ``detail`` may be a plain message or a dict with ``message`` and
    optional ``errors`` plus extra fields.
    """
    detail = exc.detail
    headers = getattr(exc, "headers", None)
    if isinstance(detail, dict):
        payload = dict(detail)
        message = payload.pop("message", "Request failed")
        errors = payload.pop("errors", None)
        return ErrorResponse.create(message, exc.status_code, errors, headers, **payload)
    return ErrorResponse.create(str(detail), exc.status_code, headers=headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors."""
    errors = validation_errors(exc)
    logger.info(f"Validation failed on {request.url.path}: {list(errors)}")
    return ErrorResponse.create(
        "Validation failed",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        errors,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    correlation_id = str(uuid4())
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}",
        exc_info=True,
        extra={"correlation_id": correlation_id},
    )
    return ErrorResponse.create(
        "An unexpected error occurred. Please try again later.",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        headers={"X-Correlation-Id": correlation_id},
        correlation_id=correlation_id,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
