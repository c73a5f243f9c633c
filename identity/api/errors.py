"""Shared API error types and the domain-error to HTTP status mapping."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from fastapi import HTTPException

from identity.auth import errors as domain


class ApiErrorCode(StrEnum):
    """Machine-readable API error codes raised at the transport edge."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    REQUEST_TOO_LARGE = "REQUEST_TOO_LARGE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class ApiError(HTTPException):
    """HTTP exception carrying stable API error envelope."""

    def __init__(
        self, *, status_code: int, error_code: ApiErrorCode, message: str
    ) -> None:
        """Build an HTTP exception with standard detail structure."""
        super().__init__(
            status_code=status_code,
            detail={"error_code": str(error_code), "message": message},
        )


_STATUS_BY_ERROR: dict[type[domain.IdentityError], int] = {
    domain.InvalidPhoneNumber: 422,
    domain.AlreadyExists: 409,
    domain.NotFound: 404,
    domain.ConfirmationRequired: 400,
    domain.AlreadyConfirmed: 400,
    domain.InvalidConfirmation: 400,
    domain.InvalidCredentials: 400,
    domain.Unauthorized: 401,
    domain.InvalidRequest: 400,
    domain.ExpiredUrl: 400,
    domain.InvalidOldPassword: 400,
    domain.PasswordUnchanged: 400,
    domain.InternalError: 500,
}


def status_for(error: domain.IdentityError) -> int:
    """Return HTTP status for a domain error, walking its class hierarchy."""
    for klass in type(error).__mro__:
        status = _STATUS_BY_ERROR.get(klass)
        if status is not None:
            return status
    return 500


def domain_error_payload(error: domain.IdentityError) -> dict[str, Any]:
    """Build the client-facing envelope for a domain error."""
    return {"error_code": error.error_code, "message": error.message, "details": []}


def to_error_payload(detail: Any, status_code: int) -> dict[str, str]:
    """Normalize HTTP exception detail into stable error payload."""
    if isinstance(detail, dict):
        error_code = str(detail.get("error_code") or f"HTTP_{status_code}")
        message = str(detail.get("message") or detail.get("detail") or "HTTP error")
        return {"error_code": error_code, "message": message}
    return {
        "error_code": f"HTTP_{status_code}",
        "message": str(detail or "HTTP error"),
    }
