"""HTTP middleware and exception handler wiring for the identity API."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from identity.api.contracts import ApiErrorResponse
from identity.api.errors import (
    ApiErrorCode,
    domain_error_payload,
    status_for,
    to_error_payload,
)
from identity.auth.errors import IdentityError, InternalError
from identity.auth.repository import StorageError
from identity.core.config import AppConfig
from identity.core.logging import set_correlation_id

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'; base-uri 'none'",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Cache-Control": "no-store",
}

_LOCATION_PREFIXES = {"body", "query", "path", "cookie", "header"}


def _log_extra(request: Request, status_code: int, **extra: Any) -> dict[str, Any]:
    return {
        "path": request.url.path,
        "method": request.method,
        "status_code": status_code,
        **extra,
    }


def _error_response(
    status_code: int,
    *,
    error_code: str,
    message: str,
    details: list[str] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ApiErrorResponse(error_code=error_code, message=message, details=details or [])
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def _format_violation(error: dict[str, Any]) -> str:
    """Render one pydantic error as ``field: message``."""
    location = ".".join(
        str(part) for part in error.get("loc", ()) if part not in _LOCATION_PREFIXES
    )
    message = str(error.get("msg") or "invalid value")
    return f"{location}: {message}" if location else message


def _declared_length(request: Request) -> int:
    try:
        return int(request.headers.get("content-length") or 0)
    except ValueError:
        return 0


def register_http_middleware(app: FastAPI, *, config: AppConfig, logger: Any) -> None:
    """Attach body-size guard, correlation ids, security headers and access logs."""
    max_bytes = config.security.request_max_bytes

    @app.middleware("http")
    async def request_size_limit_middleware(request: Request, call_next):
        if _declared_length(request) > max_bytes:
            logger.warning(
                "request_too_large",
                extra=_log_extra(request, 413, error_code=ApiErrorCode.REQUEST_TOO_LARGE),
            )
            return _error_response(
                413,
                error_code=ApiErrorCode.REQUEST_TOO_LARGE,
                message=f"Request size exceeds configured limit ({max_bytes} bytes).",
            )
        return await call_next(request)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        correlation_id = (
            request.headers.get("x-request-id")
            or request.headers.get("x-correlation-id")
            or uuid.uuid4().hex
        )
        set_correlation_id(correlation_id)
        response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        logger.info("request_completed", extra=_log_extra(request, response.status_code))
        return response


def register_exception_handlers(app: FastAPI, *, logger: Any) -> None:
    """Translate failures into the ``{error_code, message, details}`` envelope."""

    @app.exception_handler(IdentityError)
    async def handle_identity_error(request: Request, exc: IdentityError) -> JSONResponse:
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error(
                "identity_error",
                extra=_log_extra(request, status_code, error_code=exc.error_code),
                exc_info=exc,
            )
        else:
            logger.warning(
                "identity_error",
                extra=_log_extra(request, status_code, error_code=exc.error_code),
            )
        return _error_response(status_code, **domain_error_payload(exc))

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.error(
            "storage_error",
            extra=_log_extra(request, 500, error_code=InternalError.error_code),
            exc_info=exc,
        )
        return _error_response(500, **domain_error_payload(InternalError()))

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        payload = to_error_payload(exc.detail, exc.status_code)
        logger.warning(
            "http_exception",
            extra=_log_extra(request, exc.status_code, error_code=payload["error_code"]),
        )
        return _error_response(
            exc.status_code, headers=getattr(exc, "headers", None), **payload
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_exception(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning(
            "validation_exception",
            extra=_log_extra(request, 422, error_code=ApiErrorCode.VALIDATION_ERROR),
        )
        return _error_response(
            422,
            error_code=ApiErrorCode.VALIDATION_ERROR,
            message="Request validation failed",
            details=[_format_violation(error) for error in exc.errors()],
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unexpected_exception", extra=_log_extra(request, 500))
        return _error_response(
            500,
            error_code=ApiErrorCode.INTERNAL_SERVER_ERROR,
            message=InternalError.default_message,
        )
