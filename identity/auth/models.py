"""Pydantic models for the identity domain and its request payloads."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(StrEnum):
    """Roles a user account can hold."""

    USER = "user"
    ADMIN = "admin"


class PhoneNumber(BaseModel):
    """Parsed phone number stored on the user record."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    country_code: str
    iso_code: str
    international_number: str


class AccountConfirmation(BaseModel):
    """Email confirmation state; token and code stay inert once confirmed."""

    status: bool = False
    token: str
    code: str
    timestamp: datetime | None = None


class PasswordReset(BaseModel):
    """Active password recovery window, if any."""

    token: str | None = None
    expiry: int | None = Field(default=None, description="Epoch milliseconds")
    last_reset_at: datetime | None = None


class UserRecord(BaseModel):
    """Persisted user model.

    ``password_hash`` is ``None`` unless the record was loaded with the hash
    explicitly requested.
    """

    user_id: str
    name: str
    email_address: str
    phone_number: PhoneNumber
    timezone: str
    password_hash: str | None = None
    role: UserRole = UserRole.USER
    account_confirmation: AccountConfirmation
    password_reset: PasswordReset = Field(default_factory=PasswordReset)
    last_login_at: datetime | None = None
    consent: bool
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class RefreshTokenRecord(BaseModel):
    """Server-side anchor for an issued refresh token."""

    token: str
    created_at: datetime = Field(default_factory=utcnow)


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller, produced by access-token authentication."""

    user_id: str
    email_address: str
    role: UserRole


class _RequestModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class _EmailRequestModel(_RequestModel):
    email_address: EmailStr

    @field_validator("email_address")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class RegisterRequest(_EmailRequestModel):
    """Registration request payload."""

    name: str = Field(min_length=2, max_length=72)
    password: str = Field(min_length=8, max_length=24)
    phone_number: str = Field(min_length=4, max_length=20)
    consent: bool

    @field_validator("consent")
    @classmethod
    def _consent_given(cls, value: bool) -> bool:
        if value is not True:
            raise ValueError("consent must be given")
        return value


class LoginRequest(_EmailRequestModel):
    """Login request payload."""

    password: str = Field(min_length=8, max_length=24)


class ForgotPasswordRequest(_EmailRequestModel):
    """Forgot-password request payload."""


class ResetPasswordRequest(_RequestModel):
    """Reset-password request payload."""

    new_password: str = Field(min_length=8, max_length=24)


class ChangePasswordRequest(_RequestModel):
    """Change-password request payload."""

    old_password: str = Field(min_length=8, max_length=24)
    new_password: str = Field(min_length=8, max_length=24)
    confirm_new_password: str = Field(min_length=8, max_length=24)

    @model_validator(mode="after")
    def _confirmation_matches(self) -> "ChangePasswordRequest":
        if self.confirm_new_password != self.new_password:
            raise ValueError("confirmNewPassword must match newPassword")
        return self
