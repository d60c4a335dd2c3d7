"""Exception handlers producing the response envelope.

Every error leaves the API as {"success": false, "message": ..., ...}.
Domain errors map to status codes here; services never see HTTP.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import DEBUG
from domain.model.errors import (
    AccountSuspendedError,
    AuthenticationError,
    DomainError,
    DuplicateError,
    ExternalServiceError,
    InvalidOrExpiredTokenError,
    InvalidSessionError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    RepositoryError,
    ValidationError,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again later."

# Most specific first
STATUS_CODES: list[tuple[type[DomainError], int]] = [
    (ValidationError, 400),
    (InvalidOrExpiredTokenError, 400),
    (InvalidSessionError, 401),
    (AuthenticationError, 401),
    (AccountSuspendedError, 403),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (DuplicateError, 409),
    (RateLimitedError, 429),
    (ExternalServiceError, 502),
    (RepositoryError, 503),
]


def status_for(exc: DomainError) -> int:
    for error_type, status_code in STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


def envelope(message: str, success: bool = False, **payload) -> dict:
    return {"success": success, "message": message, **payload}


def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = status_for(exc)
    extra = {
        "method": request.method,
        "path": request.url.path,
        "statusCode": status_code,
        "errorType": type(exc).__name__,
    }
    headers = None
    content = envelope(exc.message)

    if isinstance(exc, ValidationError) and exc.errors:
        content["errors"] = exc.errors
    elif isinstance(exc, DuplicateError):
        content["field"] = exc.field
    elif isinstance(exc, InvalidSessionError) and exc.needs_onboarding:
        content["needsOnboarding"] = True
    elif isinstance(exc, RateLimitedError):
        content["retryAfter"] = exc.retry_after
        headers = {"Retry-After": str(exc.retry_after)}

    if status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}", extra=extra)
        if status_code == 500 and DEBUG:
            content["error"] = exc.message
            content["errorType"] = type(exc).__name__
    else:
        logger.info(f"{type(exc).__name__}: {exc.message}", extra=extra)

    return JSONResponse(status_code=status_code, content=content, headers=headers)


def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are reported like any other validation failure."""
    errors = {}
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc not in ("body", "query", "path"))
        errors[field or "body"] = error["msg"]
    message = next(iter(errors.values()), "Invalid request")
    return JSONResponse(status_code=400, content=envelope(message, errors=errors))


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception: {request.method} {request.url.path}",
        extra={"method": request.method, "path": request.url.path, "statusCode": 500},
        exc_info=True,
    )
    content = envelope(GENERIC_ERROR_MESSAGE)
    if DEBUG:
        content["error"] = str(exc)
        content["errorType"] = type(exc).__name__
    return JSONResponse(status_code=500, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
