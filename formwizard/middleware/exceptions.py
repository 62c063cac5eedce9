"""Custom exceptions and handlers for consistent error responses.

Every handled error leaves the service in the same envelope:

    {"error": {"code": "...", "message": "...", "details": {...}}}

Field-level problems always use `details.fields` (field → messages),
whether they come from a step's rules or from FastAPI rejecting the
request itself.

Redirects (skip-ahead, unknown step, stale session) are not errors and
never pass through here; the wizard router turns them into responses.
"""

import logging
from typing import Any, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from formwizard.sessions import peek_session_id

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """A wizard, route or store is defined incorrectly.

    Raised while definitions are built or registered, so a broken setup
    fails at startup rather than on the first visitor.
    """


class FormWizardException(Exception):
    """Base exception for request-time wizard errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class ValidationFailed(FormWizardException):
    """Submitted fields did not satisfy the step's rules.

    `errors` maps field name → list of messages. Nothing is persisted
    when this is raised.
    """

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        super().__init__(
            message="The given data was invalid.",
            status_code=422,
            error_code="VALIDATION_FAILED",
            details={"fields": errors},
        )


class WizardNotFoundError(FormWizardException):
    def __init__(self, name: str):
        super().__init__(
            message=f"Wizard not found: {name}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="WIZARD_NOT_FOUND",
        )


class SessionStoreUnavailable(FormWizardException):
    """The session back-end could not be read or written."""

    def __init__(self, message: str = "Session store temporarily unavailable. Please try again."):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="SESSION_STORE_UNAVAILABLE",
        )


# ── Envelope ─────────────────────────────────────────────────

def error_body(code: str, message: str, details: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"error": error}


def _request_context(request: Request) -> dict[str, Any]:
    return {
        "path": request.url.path,
        "method": request.method,
        "session": peek_session_id(),
    }


# ── Handlers ─────────────────────────────────────────────────

async def formwizard_exception_handler(request: Request, exc: FormWizardException) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}",
        extra={"error_code": exc.error_code, **_request_context(request)},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.error_code, exc.message, exc.details),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail}", extra=_request_context(request))
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(f"HTTP_{exc.status_code}", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Requests FastAPI rejects before a wizard sees them (bad path params etc.)."""
    fields: dict[str, list[str]] = {}
    for error in exc.errors():
        # drop the leading "body" / "path" / "query" segment
        location = ".".join(str(part) for part in error["loc"][1:]) or str(error["loc"][0])
        fields.setdefault(location, []).append(error["msg"])

    logger.warning(f"Malformed request: {sorted(fields)}", extra=_request_context(request))
    return JSONResponse(
        status_code=422,
        content=error_body("REQUEST_VALIDATION_ERROR", "Request validation error", {"fields": fields}),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        extra=_request_context(request),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("INTERNAL_SERVER_ERROR", "An unexpected error occurred. Please try again later."),
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(FormWizardException, formwizard_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
