"""
Error taxonomy and the JSON error envelope.

Services and the permission evaluator raise ``AppError`` subclasses; the
handlers registered in ``create_app()`` turn them into::

    {"error": {"code": "...", "message": "...", "status": 403}}
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

log = structlog.get_logger()


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    ACCESS_DENIED = "ACCESS_DENIED"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INVALID_OPERATION = "INVALID_OPERATION"
    CONFLICT = "CONFLICT"
    INTERNAL = "INTERNAL_ERROR"


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    kind: ErrorKind = ErrorKind.INTERNAL
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[list[dict]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.kind.value


class Unauthenticated(AppError):
    kind = ErrorKind.UNAUTHENTICATED
    status_code = 401
    default_message = "Authentication required"


class AccessDenied(AppError):
    kind = ErrorKind.ACCESS_DENIED
    status_code = 403
    default_message = "Access denied"


class NotFound(AppError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "Not found"


class ValidationFailed(AppError):
    kind = ErrorKind.VALIDATION_FAILED
    status_code = 400
    default_message = "Validation failed"


class InvalidOperation(AppError):
    kind = ErrorKind.INVALID_OPERATION
    status_code = 400
    default_message = "Operation not allowed"


class Conflict(AppError):
    kind = ErrorKind.CONFLICT
    status_code = 409
    default_message = "Resource already exists"


class Internal(AppError):
    kind = ErrorKind.INTERNAL
    status_code = 500


ERROR_CLASSES: dict[ErrorKind, type[AppError]] = {
    cls.kind: cls
    for cls in (
        Unauthenticated,
        AccessDenied,
        NotFound,
        ValidationFailed,
        InvalidOperation,
        Conflict,
        Internal,
    )
}

_STATUS_CODES: dict[int, ErrorKind] = {
    400: ErrorKind.VALIDATION_FAILED,
    401: ErrorKind.UNAUTHENTICATED,
    403: ErrorKind.ACCESS_DENIED,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
}


def error_from_kind(kind: ErrorKind, message: Optional[str] = None) -> AppError:
    return ERROR_CLASSES[kind](message)


def error_body(code: str, message: str, status: int, details: Any = None) -> dict:
    body: dict[str, Any] = {"code": code, "message": message, "status": status}
    if details is not None:
        body["details"] = details
    return {"error": body}


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message, exc.status_code, exc.details),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for err in exc.errors():
        # drop the leading "body"/"query"/"path" segment
        loc = [str(part) for part in err.get("loc", ())][1:]
        details.append(
            {
                "field": ".".join(loc) or "body",
                "message": err.get("msg", "Invalid value"),
                "type": err.get("type"),
            }
        )
    return JSONResponse(
        status_code=400,
        content=error_body(ErrorKind.VALIDATION_FAILED.value, "Validation failed", 400, details),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    kind = _STATUS_CODES.get(exc.status_code)
    code = kind.value if kind else "HTTP_ERROR"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, str(exc.detail), exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("request.unhandled_error", path=request.url.path, method=request.method)
    return JSONResponse(
        status_code=500,
        content=error_body(ErrorKind.INTERNAL.value, "Internal server error", 500),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
