"""Error taxonomy shared by services and routers, plus the JSON renderers."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from wildtrack.core.config import settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base class for failures that map onto a JSON error response."""

    status_code = 500
    kind = "InternalError"

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class BadRequest(ApiError):
    status_code = 400
    kind = "BadRequest"


class Unauthorized(ApiError):
    status_code = 401
    kind = "Unauthorized"


class Forbidden(ApiError):
    status_code = 403
    kind = "Forbidden"


class NotFound(ApiError):
    status_code = 404
    kind = "NotFound"


class RateLimited(ApiError):
    status_code = 429
    kind = "RateLimited"


class UpstreamFailure(ApiError):
    status_code = 502
    kind = "UpstreamFailure"


class ServiceUnavailable(ApiError):
    status_code = 503
    kind = "ServiceUnavailable"


def error_body(kind: str, message: str, details: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "error": kind, "message": message}
    # Raw upstream text and exception messages stay out of production responses
    if details is not None and not settings.is_production:
        body["details"] = details
    return body


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s (%s)", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.kind, exc.message, exc.details))


_HTTP_KINDS = {
    400: "BadRequest",
    401: "Unauthorized",
    403: "Forbidden",
    404: "NotFound",
    405: "MethodNotAllowed",
    429: "RateLimited",
}


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    kind = _HTTP_KINDS.get(exc.status_code, "InternalError" if exc.status_code >= 500 else "BadRequest")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(kind, message),
        headers=getattr(exc, "headers", None),
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    message = problems[0] if problems else "Invalid request"
    return JSONResponse(status_code=400, content=error_body("BadRequest", message, problems))


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=error_body("InternalError", "Internal server error", str(exc)),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)


__all__ = [
    "ApiError",
    "BadRequest",
    "Unauthorized",
    "Forbidden",
    "NotFound",
    "RateLimited",
    "UpstreamFailure",
    "ServiceUnavailable",
    "error_body",
    "register_exception_handlers",
]
