from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from loan_wizard.services.errors import (
    InvalidTransitionError,
    LineItemLockedError,
    SaccoApiError,
    SessionNotFoundError,
    WizardBusyError,
    WizardError,
)

logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    400: "bad_request",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    422: "validation_error",
    429: "rate_limited",
    502: "upstream_error",
}


def _default_message(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Request failed"


def _build_response(
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    payload = {
        "code": code,
        "message": message,
        "data": None,
        "details": details or {},
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Only routing raises these here (unknown path, wrong method); detail is a string.
    message = exc.detail if isinstance(exc.detail, str) else _default_message(exc.status_code)
    return _build_response(
        exc.status_code,
        HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
        message,
        {"path": request.url.path},
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Request bodies carry applicant details, so only locations and messages are echoed.
    errors = [
        {
            "field": ".".join(
                str(part) for part in error.get("loc", ()) if part not in {"body", "query", "path"}
            ),
            "message": error.get("msg", "Invalid value"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    message = "Validation failed"
    if errors:
        first = errors[0]
        message = f"{first['field']}: {first['message']}" if first["field"] else first["message"]
    return _build_response(422, "validation_error", message, {"errors": errors})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _build_response(
        status_code=500,
        code="internal_server_error",
        message="Internal server error",
        details={},
    )


def _wizard_status_code(exc: WizardError) -> int:
    if isinstance(exc, SessionNotFoundError):
        return 404
    if isinstance(exc, (InvalidTransitionError, WizardBusyError, LineItemLockedError)):
        return 409
    return 400


async def wizard_exception_handler(request: Request, exc: WizardError) -> JSONResponse:
    return _build_response(
        status_code=_wizard_status_code(exc),
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def upstream_exception_handler(request: Request, exc: SaccoApiError) -> JSONResponse:
    logger.warning("Unhandled upstream failure: %s", exc)
    return _build_response(
        status_code=502,
        code="upstream_error",
        message=exc.message,
        details={"operation": exc.operation, "upstream_status": exc.status_code},
    )


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    limit = getattr(exc, "detail", None)
    response = _build_response(
        status_code=429,
        code="rate_limited",
        message=_default_message(429),
        details={"limit": limit} if limit else {},
    )
    headers = getattr(exc, "headers", None)
    if isinstance(headers, dict):
        response.headers.update(headers)
    return response


def register_exception_handlers(app) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(WizardError, wizard_exception_handler)
    app.add_exception_handler(SaccoApiError, upstream_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
