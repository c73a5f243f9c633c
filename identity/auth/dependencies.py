"""FastAPI dependencies that authenticate requests from the access cookie."""

from __future__ import annotations

from typing import Callable

from fastapi import Cookie

from identity.auth.cookies import ACCESS_TOKEN_COOKIE
from identity.auth.models import AuthContext
from identity.auth.session import SessionManager


def create_auth_dependency(sessions: SessionManager) -> Callable[..., AuthContext]:
    """Build a dependency resolving the caller's ``AuthContext``.

    Missing, forged or expired tokens and unknown users all raise
    ``Unauthorized``.
    """

    def require_auth_context(
        access_token: str | None = Cookie(default=None, alias=ACCESS_TOKEN_COOKIE),
    ) -> AuthContext:
        return sessions.authenticate(access_token)

    return require_auth_context
