"""Session cookie attributes shared by login, refresh and logout."""

from __future__ import annotations

from fastapi import Response

from identity.core.config import AppConfig

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"


class SessionCookies:
    """Writes and clears the access/refresh cookies.

    Cookies are ``httpOnly`` and ``SameSite=strict``, scoped to the API root
    and the server's host; ``secure`` is dropped only in development.
    """

    def __init__(self, config: AppConfig) -> None:
        self._path = config.server.api_prefix
        self._domain = config.server.cookie_domain or None
        self._secure = not config.server.is_development
        self._access_ttl = config.auth.access_token_ttl_seconds
        self._refresh_ttl = config.auth.refresh_token_ttl_seconds

    def set_access_token(
        self, response: Response, token: str, ttl_seconds: int | None = None
    ) -> None:
        self._set(response, ACCESS_TOKEN_COOKIE, token, ttl_seconds or self._access_ttl)

    def set_refresh_token(
        self, response: Response, token: str, ttl_seconds: int | None = None
    ) -> None:
        self._set(response, REFRESH_TOKEN_COOKIE, token, ttl_seconds or self._refresh_ttl)

    def clear(self, response: Response) -> None:
        """Expire both session cookies."""
        for key in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
            response.delete_cookie(
                key,
                path=self._path,
                domain=self._domain,
                secure=self._secure,
                httponly=True,
                samesite="strict",
            )

    def _set(self, response: Response, key: str, token: str, ttl_seconds: int) -> None:
        # Starlette's max_age is in seconds; it also emits a matching Expires.
        response.set_cookie(
            key,
            token,
            max_age=int(ttl_seconds),
            path=self._path,
            domain=self._domain,
            secure=self._secure,
            httponly=True,
            samesite="strict",
        )
