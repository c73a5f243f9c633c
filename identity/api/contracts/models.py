"""Pydantic API response models used in OpenAPI contracts."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from identity.auth.models import PhoneNumber, UserRecord, UserRole

SUCCESS_MESSAGE = "The operation has been successful"


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")
    details: list[str] = Field(
        default_factory=list, description="Individual validation violations"
    )


class _ResponseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StatusResponse(_ResponseModel):
    """Plain success payload."""

    status: Literal["ok"] = "ok"
    message: str = SUCCESS_MESSAGE


class HealthResponse(_ResponseModel):
    """Health check response payload."""

    application: dict[str, Any]
    system: dict[str, Any]
    timestamp: int


class RegisterResponse(_ResponseModel):
    """Identifier of a newly registered user."""

    user_id: str
    message: str = SUCCESS_MESSAGE


class TokenPairResponse(_ResponseModel):
    """Tokens issued at login (also delivered as cookies)."""

    access_token: str
    refresh_token: str
    message: str = SUCCESS_MESSAGE


class AccessTokenResponse(_ResponseModel):
    """Access token returned by the refresh endpoint."""

    access_token: str
    message: str = SUCCESS_MESSAGE


class UserProfileResponse(_ResponseModel):
    """Authenticated user's profile without credentials or secrets."""

    user_id: str
    name: str
    email_address: str
    phone_number: PhoneNumber
    timezone: str
    role: UserRole
    account_confirmed: bool
    last_login_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_user(cls, user: UserRecord) -> "UserProfileResponse":
        return cls(
            user_id=user.user_id,
            name=user.name,
            email_address=user.email_address,
            phone_number=user.phone_number,
            timezone=user.timezone,
            role=user.role,
            account_confirmed=user.account_confirmation.status,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
        )
