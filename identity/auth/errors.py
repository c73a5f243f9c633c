"""Typed failures raised by identity workflows.

Each error carries a stable machine-readable ``error_code`` and a message that
is safe to show to clients. HTTP status codes are assigned at the transport
boundary (``identity.api.errors``), never here.
"""

from __future__ import annotations


class IdentityError(Exception):
    """Base class for expected workflow failures."""

    error_code = "IDENTITY_ERROR"
    default_message = "The request could not be completed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidPhoneNumber(IdentityError):
    error_code = "INVALID_PHONE_NUMBER"
    default_message = "Invalid phone number"


class AlreadyExists(IdentityError):
    error_code = "ALREADY_EXISTS"
    default_message = "user already exists"


class NotFound(IdentityError):
    error_code = "NOT_FOUND"
    default_message = "user not found"


class ConfirmationRequired(IdentityError):
    error_code = "ACCOUNT_CONFIRMATION_REQUIRED"
    default_message = "Account confirmation required"


class AlreadyConfirmed(IdentityError):
    error_code = "ACCOUNT_ALREADY_CONFIRMED"
    default_message = "Account already confirmed"


class InvalidConfirmation(IdentityError):
    error_code = "INVALID_CONFIRMATION"
    default_message = "Invalid account confirmation token or code"


class InvalidCredentials(IdentityError):
    error_code = "INVALID_CREDENTIALS"
    default_message = "Invalid email address or password"


class Unauthorized(IdentityError):
    error_code = "UNAUTHORIZED"
    default_message = "You are not authorized to perform this action"


class InvalidRequest(IdentityError):
    error_code = "INVALID_REQUEST"
    default_message = "Invalid request"


class ExpiredUrl(IdentityError):
    error_code = "EXPIRED_URL"
    default_message = "Your password reset url is expired"


class InvalidOldPassword(IdentityError):
    error_code = "INVALID_OLD_PASSWORD"
    default_message = "Invalid old password"


class PasswordUnchanged(IdentityError):
    error_code = "PASSWORD_UNCHANGED"
    default_message = "Password matching with old password"


class InternalError(IdentityError):
    error_code = "INTERNAL_SERVER_ERROR"
    default_message = "Something went wrong!"
