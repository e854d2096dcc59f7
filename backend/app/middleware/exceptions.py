"""Exception types and handlers that shape every error response.

All errors leave the API as:
    {"error": {"code": "...", "message": "...", "details": {...}?}}

Messages are short and safe to show to the user; internals go to the log.
"""

import logging
import traceback
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.store import RecordStoreError

logger = logging.getLogger(__name__)


class CareOpsException(Exception):
    """Base exception for CareOps application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class BusinessLogicError(CareOpsException):
    """A request was understood but refused by a business rule."""

    def __init__(
        self,
        message: str,
        error_code: str = "BUSINESS_LOGIC_ERROR",
        details: dict | None = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code=error_code,
            details=details,
        )


class ResourceNotFoundError(CareOpsException):
    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


class NoWorkspaceError(CareOpsException):
    """The caller has no resolved profile or workspace.

    Clients render this as a guided fallback, not a crash.
    """

    def __init__(self, message: str = "No workspace found. Log out and log back in to fix this."):
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NO_WORKSPACE",
        )


class TransientWriteError(CareOpsException):
    """A write to the record store failed or timed out; safe to retry."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="WRITE_FAILED",
            details={"retryable": True, **(details or {})},
        )


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    content = {"error": {"code": error_code, "message": message}}
    if details:
        content["error"]["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def _request_extra(request: Request) -> dict:
    return {"path": request.url.path, "method": request.method}


# ── Handlers ────────────────────────────────────────────────

async def careops_exception_handler(
    request: Request,
    exc: CareOpsException,
) -> JSONResponse:
    logger.warning(
        "%s on %s: %s",
        exc.error_code,
        request.url.path,
        exc.message,
        extra={"error_code": exc.error_code, **_request_extra(request)},
    )
    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("HTTP %d: %s", exc.status_code, exc.detail, extra=_request_extra(request))

    response = create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
    )
    if getattr(exc, "headers", None):
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Pydantic errors from request bodies or draft updates → 422."""
    logger.warning(
        "Validation error on %s",
        request.url.path,
        extra={**_request_extra(request), "errors": exc.errors()},
    )

    errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


async def record_store_exception_handler(
    request: Request,
    exc: RecordStoreError,
) -> JSONResponse:
    """Store failures that escaped a caller → retryable 503."""
    logger.error(
        "Record store error on %s: %s",
        request.url.path,
        exc.message,
        extra=_request_extra(request),
    )
    return create_error_response(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message="Could not reach the data store. Please try again.",
        error_code="RECORD_STORE_UNAVAILABLE",
        details={"retryable": True},
    )


async def database_exception_handler(
    request: Request,
    exc: IntegrityError,
) -> JSONResponse:
    """Unique / foreign-key / not-null violations → 422."""
    logger.error(
        "Database integrity error on %s: %s",
        request.url.path,
        exc,
        extra=_request_extra(request),
    )

    error_msg = str(getattr(exc, "orig", exc)).lower()
    if "unique" in error_msg:
        message, error_code = "A record with this value already exists", "DUPLICATE_RECORD"
    elif "foreign key" in error_msg:
        message, error_code = "Referenced record does not exist", "FOREIGN_KEY_VIOLATION"
    elif "not null" in error_msg:
        message, error_code = "Required field is missing", "NULL_VALUE_NOT_ALLOWED"
    else:
        message, error_code = "Database constraint violation", "INTEGRITY_ERROR"

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message=message,
        error_code=error_code,
    )


async def operational_exception_handler(
    request: Request,
    exc: OperationalError,
) -> JSONResponse:
    logger.error(
        "Database operational error on %s: %s",
        request.url.path,
        exc,
        extra=_request_extra(request),
    )
    return create_error_response(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message="Database temporarily unavailable. Please try again.",
        error_code="DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    logger.error(
        "Unhandled exception on %s: %s",
        request.url.path,
        exc,
        extra={**_request_extra(request), "traceback": traceback.format_exc()},
        exc_info=True,
    )
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    app.add_exception_handler(CareOpsException, careops_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(RecordStoreError, record_store_exception_handler)
    app.add_exception_handler(IntegrityError, database_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
