"""Session manager: login, access-token refresh, logout and authentication."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from identity.auth.errors import (
    ConfirmationRequired,
    InvalidCredentials,
    NotFound,
    Unauthorized,
)
from identity.auth.models import (
    AuthContext,
    LoginRequest,
    RefreshTokenRecord,
    UserRecord,
)
from identity.auth.repository import IdentityRepository
from identity.core.security import PasswordHasher, TokenCodec, TokenError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedTokens:
    """Access/refresh pair issued at login."""

    user_id: str
    access_token: str
    refresh_token: str
    access_ttl_seconds: int
    refresh_ttl_seconds: int


@dataclass(frozen=True)
class RefreshOutcome:
    """Result of a refresh call; ``minted`` is false for a short-circuit."""

    access_token: str
    access_ttl_seconds: int
    minted: bool


class SessionManager:
    """Issues and consumes access/refresh token pairs.

    The refresh token is stored verbatim so a syntactically valid but
    unknown token is never honored.
    """

    def __init__(
        self,
        *,
        repo: IdentityRepository,
        hasher: PasswordHasher,
        access_codec: TokenCodec,
        refresh_codec: TokenCodec,
    ) -> None:
        self._repo = repo
        self._hasher = hasher
        self._access_codec = access_codec
        self._refresh_codec = refresh_codec

    def login(self, request: LoginRequest) -> IssuedTokens:
        """Authenticate credentials of a confirmed account and issue tokens."""
        user = self._repo.get_user_by_email(
            request.email_address, include_password=True
        )
        if user is None:
            raise NotFound()
        if not user.account_confirmation.status:
            raise ConfirmationRequired()
        if not user.password_hash or not self._hasher.verify(
            request.password, user.password_hash
        ):
            LOGGER.info("login_failed", extra={"user_id": user.user_id})
            raise InvalidCredentials()

        access_token = self._access_codec.encode(user.user_id)
        refresh_token = self._refresh_codec.encode(user.user_id)

        user.last_login_at = datetime.now(timezone.utc)
        self._repo.save_user(user)
        self._repo.create_refresh_token(RefreshTokenRecord(token=refresh_token))

        LOGGER.info("login_succeeded", extra={"user_id": user.user_id})
        return IssuedTokens(
            user_id=user.user_id,
            access_token=access_token,
            refresh_token=refresh_token,
            access_ttl_seconds=self._access_codec.ttl_seconds,
            refresh_ttl_seconds=self._refresh_codec.ttl_seconds,
        )

    def refresh(
        self, access_token: str | None = None, refresh_token: str | None = None
    ) -> RefreshOutcome:
        """Return a usable access token or raise ``Unauthorized``.

        A still-valid access token is handed back unchanged. Otherwise a stored,
        verifiable refresh token yields a freshly minted access token.
        """
        if access_token and self._verify(self._access_codec, access_token):
            return RefreshOutcome(
                access_token=access_token,
                access_ttl_seconds=self._access_codec.ttl_seconds,
                minted=False,
            )

        if refresh_token and self._repo.get_refresh_token(refresh_token) is not None:
            subject = self._verify(self._refresh_codec, refresh_token)
            if subject:
                LOGGER.info("access_token_refreshed", extra={"user_id": subject})
                return RefreshOutcome(
                    access_token=self._access_codec.encode(subject),
                    access_ttl_seconds=self._access_codec.ttl_seconds,
                    minted=True,
                )

        raise Unauthorized()

    def logout(self, refresh_token: str | None = None) -> None:
        """Delete the refresh record if one is given; missing records are fine."""
        if not refresh_token:
            return
        if not self._repo.delete_refresh_token(refresh_token):
            LOGGER.debug("logout_refresh_token_not_found")

    def authenticate(self, access_token: str | None) -> AuthContext:
        """Resolve the caller behind an access token."""
        user = self.current_user(access_token)
        return AuthContext(
            user_id=user.user_id,
            email_address=user.email_address,
            role=user.role,
        )

    def current_user(self, access_token: str | None) -> UserRecord:
        """Load the user behind an access token, raising ``Unauthorized``."""
        subject = self._verify(self._access_codec, access_token) if access_token else ""
        if not subject:
            raise Unauthorized()
        user = self._repo.get_user_by_id(subject)
        if user is None:
            raise Unauthorized()
        return user

    @staticmethod
    def _verify(codec: TokenCodec, token: str) -> str:
        """Return token subject, or empty string when verification fails."""
        try:
            return codec.decode(token).subject
        except TokenError:
            return ""
