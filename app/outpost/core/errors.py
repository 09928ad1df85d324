"""Translate every failure into the one error body clients see.

``{"code", "message", "details", "trace_id"}`` is rendered for application
errors, routing errors, request validation failures, repository outages and
anything unexpected. The code is also left on ``request.state`` for the
request log, and audit records queued before the failure are delivered once
the error response has been sent.
"""

import logging
from decimal import Decimal

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from starlette.background import BackgroundTask
from starlette.exceptions import HTTPException

from app.outpost.core.error_catalog import AppError, ErrorCatalog, ErrorDefinition

logger = logging.getLogger(__name__)

_ROUTING_ERROR_CODES = {
    401: ErrorCatalog.INVALID_TOKEN.code,
    403: ErrorCatalog.DENIED.code,
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}

_REQUEST_LOCATIONS = {"body", "query", "path", "header"}


def _json_safe(value):
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def error_response(code: str, message: str, details: object, trace_id: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"code": code, "message": message, "details": _json_safe(details), "trace_id": trace_id},
    )


def _render(
    request: Request,
    exc: Exception,
    *,
    code: str,
    message: str,
    details: object,
    status_code: int,
    headers: dict | None = None,
) -> JSONResponse:
    request.state.error_code = code
    request.state.error_class = exc.__class__.__name__
    response = error_response(code, message, details, getattr(request.state, "trace_id", ""), status_code)
    if headers:
        response.headers.update(headers)
    pending = getattr(request.state, "pending_audit", None)
    if pending:
        response.background = BackgroundTask(pending.flush)
    return response


def _render_definition(request: Request, exc: Exception, error: ErrorDefinition, details: object) -> JSONResponse:
    return _render(
        request,
        exc,
        code=error.code,
        message=error.message,
        details=details,
        status_code=error.status_code,
    )


def validation_details(exc: RequestValidationError) -> dict:
    errors = []
    for error in exc.errors():
        loc = list(error.get("loc", []))
        field = ".".join(str(part) for part in loc if part not in _REQUEST_LOCATIONS) or None
        errors.append(
            {
                "field": field,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "validation_error"),
                "loc": _json_safe(loc),
            }
        )
    return {"message": "request validation failed", "errors": errors}


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return _render_definition(request, exc, exc.error, exc.details)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _render(
            request,
            exc,
            code=_ROUTING_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
            message=str(exc.detail) if exc.detail is not None else "HTTP error",
            details=None,
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _render_definition(request, exc, ErrorCatalog.INVALID_INPUT, validation_details(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        if isinstance(exc, (OperationalError, PoolTimeoutError)):
            logger.warning("Repository unavailable", exc_info=exc)
            return _render_definition(
                request,
                exc,
                ErrorCatalog.UNAVAILABLE,
                {"component": "repository", "retryable": True},
            )
        logger.error("Unhandled error", exc_info=exc)
        return _render_definition(request, exc, ErrorCatalog.INTERNAL_ERROR, {"type": exc.__class__.__name__})
