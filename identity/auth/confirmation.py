"""Registration and email confirmation workflow."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from identity.auth.errors import (
    AlreadyConfirmed,
    AlreadyExists,
    InternalError,
    InvalidConfirmation,
)
from identity.auth.models import (
    AccountConfirmation,
    PasswordReset,
    RegisterRequest,
    UserRecord,
    UserRole,
)
from identity.auth.notifier import (
    Notifier,
    account_confirmed,
    confirmation_requested,
    notify_safely,
)
from identity.auth.phone import default_timezone, parse_phone_number
from identity.auth.repository import DuplicateUserError, IdentityRepository, StorageError
from identity.core.config import ServerConfig
from identity.core.security import PasswordHasher, generate_otp, generate_random_token

LOGGER = logging.getLogger(__name__)


class ConfirmationWorkflow:
    """Turns a registration into an unconfirmed account, then confirms it."""

    def __init__(
        self,
        *,
        repo: IdentityRepository,
        hasher: PasswordHasher,
        notifier: Notifier,
        server: ServerConfig,
    ) -> None:
        self._repo = repo
        self._hasher = hasher
        self._notifier = notifier
        self._server = server

    def register(self, request: RegisterRequest) -> str:
        """Create an unconfirmed user and return its identifier."""
        phone = parse_phone_number(request.phone_number)
        timezone_name = default_timezone(phone.iso_code)

        if self._repo.get_user_by_email(request.email_address) is not None:
            raise AlreadyExists(f"user already exist with {request.email_address}")

        user = UserRecord(
            user_id=uuid.uuid4().hex,
            name=request.name,
            email_address=request.email_address,
            phone_number=phone,
            timezone=timezone_name,
            password_hash=self._hasher.hash(request.password),
            role=UserRole.USER,
            account_confirmation=AccountConfirmation(
                status=False,
                token=generate_random_token(),
                code=generate_otp(6),
            ),
            password_reset=PasswordReset(),
            consent=request.consent,
        )

        try:
            self._repo.insert_user(user)
        except DuplicateUserError as exc:
            raise AlreadyExists(
                f"user already exist with {request.email_address}"
            ) from exc
        except StorageError as exc:
            raise InternalError() from exc

        confirmation = user.account_confirmation
        confirmation_url = (
            f"{self._server.frontend_url}/confirmation/{confirmation.token}"
            f"?code={confirmation.code}"
        )
        notify_safely(
            self._notifier,
            confirmation_requested(user.name, user.email_address, confirmation_url),
        )
        LOGGER.info(
            "user_registered",
            extra={"user_id": user.user_id, "email": user.email_address},
        )
        return user.user_id

    def confirm(self, token: str, code: str) -> None:
        """Mark the account owning ``(token, code)`` as confirmed."""
        user = self._repo.get_user_by_confirmation(token, code)
        if user is None:
            raise InvalidConfirmation()
        if user.account_confirmation.status:
            raise AlreadyConfirmed()

        user.account_confirmation.status = True
        user.account_confirmation.timestamp = datetime.now(timezone.utc)
        self._repo.save_user(user)

        notify_safely(self._notifier, account_confirmed(user.email_address))
        LOGGER.info("account_confirmed", extra={"user_id": user.user_id})
