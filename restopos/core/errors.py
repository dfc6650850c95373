"""
Error Taxonomy

Every failure a handler can produce maps to one ErrorKind, and every
ErrorKind maps to one HTTP status. Services raise these exceptions; the
handlers registered in restopos.main render them as

    {"error": "<message>", "code": "<kind>", "details": ...}
"""

import logging
from enum import Enum
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from restopos.core.config import get_settings

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    BACKEND = "backend"


class PosError(Exception):
    """Base class for errors that are safe to show to API clients."""

    kind: ErrorKind = ErrorKind.BACKEND
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": self.kind.value}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationFailed(PosError):
    kind = ErrorKind.VALIDATION
    status_code = 400


class NotAuthenticated(PosError):
    kind = ErrorKind.UNAUTHENTICATED
    status_code = 401


class PermissionDenied(PosError):
    kind = ErrorKind.FORBIDDEN
    status_code = 403


class NotFound(PosError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class StateConflict(PosError):
    """The entity exists but is in a state that forbids the operation."""
    kind = ErrorKind.CONFLICT
    status_code = 400


class BackendError(PosError):
    kind = ErrorKind.BACKEND
    status_code = 500


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

async def pos_error_handler(request: Request, exc: PosError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "code": ErrorKind.VALIDATION.value, "details": errors},
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # Internal tool: the driver message is passed through
    logger.exception(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": str(exc.__cause__ or exc), "code": ErrorKind.BACKEND.value},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")
    settings = get_settings()
    return JSONResponse(
        status_code=500,
        content={
            "error": str(exc) if settings.debug else "An unexpected error occurred",
            "code": ErrorKind.BACKEND.value,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PosError, pos_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
