"""Password recovery (forgot/reset) and authenticated password change."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from identity.auth.errors import (
    ConfirmationRequired,
    ExpiredUrl,
    InvalidOldPassword,
    InvalidRequest,
    NotFound,
    PasswordUnchanged,
)
from identity.auth.models import (
    AuthContext,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
)
from identity.auth.notifier import (
    Notifier,
    notify_safely,
    password_changed,
    password_reset_completed,
    password_reset_requested,
)
from identity.auth.repository import IdentityRepository
from identity.core.config import ServerConfig
from identity.core.security import PasswordHasher, generate_random_token

LOGGER = logging.getLogger(__name__)


def _now_millis() -> int:
    return int(time.time() * 1000)


class PasswordRecoveryWorkflow:
    """Time-boxed, single-use reset tokens plus the change-password flow."""

    def __init__(
        self,
        *,
        repo: IdentityRepository,
        hasher: PasswordHasher,
        notifier: Notifier,
        server: ServerConfig,
        reset_ttl_minutes: int = 15,
    ) -> None:
        self._repo = repo
        self._hasher = hasher
        self._notifier = notifier
        self._server = server
        self._reset_ttl_minutes = int(reset_ttl_minutes)

    def forgot_password(self, request: ForgotPasswordRequest) -> None:
        """Open a reset window for a confirmed account and email the link."""
        user = self._repo.get_user_by_email(request.email_address)
        if user is None:
            raise NotFound()
        if not user.account_confirmation.status:
            raise ConfirmationRequired()

        token = generate_random_token()
        user.password_reset.token = token
        user.password_reset.expiry = _now_millis() + self._reset_ttl_minutes * 60 * 1000
        self._repo.save_user(user)

        reset_url = f"{self._server.frontend_url}/reset-password/{token}"
        notify_safely(
            self._notifier,
            password_reset_requested(
                user.name, user.email_address, reset_url, self._reset_ttl_minutes
            ),
        )
        LOGGER.info("password_reset_requested", extra={"user_id": user.user_id})

    def reset_password(self, token: str, request: ResetPasswordRequest) -> None:
        """Replace the password of the account holding a live reset token."""
        user = self._repo.get_user_by_reset_token(token)
        if user is None:
            raise NotFound()
        if not user.account_confirmation.status:
            raise ConfirmationRequired()

        expiry = user.password_reset.expiry
        if not expiry:
            raise InvalidRequest()
        if _now_millis() > expiry:
            raise ExpiredUrl()

        user.password_hash = self._hasher.hash(request.new_password)
        user.password_reset.token = None
        user.password_reset.expiry = None
        user.password_reset.last_reset_at = datetime.now(timezone.utc)
        self._repo.save_user(user)

        notify_safely(
            self._notifier, password_reset_completed(user.name, user.email_address)
        )
        LOGGER.info("password_reset_completed", extra={"user_id": user.user_id})

    def change_password(
        self, context: AuthContext, request: ChangePasswordRequest
    ) -> None:
        """Change password of the authenticated caller after re-checking the old one."""
        user = self._repo.get_user_by_id(context.user_id, include_password=True)
        if user is None:
            raise NotFound()

        if not user.password_hash or not self._hasher.verify(
            request.old_password, user.password_hash
        ):
            raise InvalidOldPassword()
        if request.new_password == request.old_password:
            raise PasswordUnchanged()

        # Existing sessions stay valid after a change.
        user.password_hash = self._hasher.hash(request.new_password)
        self._repo.save_user(user)

        notify_safely(self._notifier, password_changed(user.name, user.email_address))
        LOGGER.info("password_changed", extra={"user_id": user.user_id})
