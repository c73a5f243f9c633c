"""Identity API router: registration, sessions and password recovery."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import APIRouter, Cookie, Depends, Query, Response

from identity.api.contracts import (
    AccessTokenResponse,
    ApiErrorResponse,
    RegisterResponse,
    StatusResponse,
    TokenPairResponse,
    UserProfileResponse,
)
from identity.auth.confirmation import ConfirmationWorkflow
from identity.auth.cookies import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    SessionCookies,
)
from identity.auth.dependencies import create_auth_dependency
from identity.auth.models import (
    AuthContext,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from identity.auth.rate_limiter import RequestRateLimiter
from identity.auth.recovery import PasswordRecoveryWorkflow
from identity.auth.session import SessionManager

_ERRORS_400 = {400: {"model": ApiErrorResponse}}
_ERRORS_401 = {401: {"model": ApiErrorResponse}}
_ERRORS_404 = {404: {"model": ApiErrorResponse}}
_ERRORS_422 = {422: {"model": ApiErrorResponse}}
_ERRORS_429 = {429: {"model": ApiErrorResponse}}


@dataclass(frozen=True)
class AuthRouteDeps:
    """Workflows and boundary helpers needed to mount identity routes."""

    confirmation: ConfirmationWorkflow
    sessions: SessionManager
    recovery: PasswordRecoveryWorkflow
    cookies: SessionCookies
    rate_limiter: RequestRateLimiter


def create_auth_router(deps: AuthRouteDeps, *, prefix: str = "/api/v1") -> APIRouter:
    """Build the identity router mounted under ``prefix``."""
    router = APIRouter(prefix=prefix, tags=["identity"])
    require_auth = create_auth_dependency(deps.sessions)

    def limited(scope: str) -> list:
        return [Depends(deps.rate_limiter.dependency(scope))]

    @router.post(
        "/register",
        response_model=RegisterResponse,
        status_code=201,
        dependencies=limited("register"),
        responses={**_ERRORS_422, 409: {"model": ApiErrorResponse}, **_ERRORS_429},
    )
    def register(req: RegisterRequest) -> RegisterResponse:
        """Create an unconfirmed account and email its confirmation link."""
        user_id = deps.confirmation.register(req)
        return RegisterResponse(user_id=user_id)

    @router.put(
        "/confirmation/{token}",
        response_model=StatusResponse,
        dependencies=limited("confirmation"),
        responses={**_ERRORS_400, **_ERRORS_429},
    )
    def confirmation(token: str, code: str = Query(min_length=1)) -> StatusResponse:
        """Confirm an account with the emailed token and code."""
        deps.confirmation.confirm(token, code)
        return StatusResponse()

    @router.post(
        "/login",
        response_model=TokenPairResponse,
        dependencies=limited("login"),
        responses={**_ERRORS_400, **_ERRORS_404, **_ERRORS_422, **_ERRORS_429},
    )
    def login(req: LoginRequest, response: Response) -> TokenPairResponse:
        """Authenticate and deliver access/refresh tokens as cookies and body."""
        issued = deps.sessions.login(req)
        deps.cookies.set_access_token(
            response, issued.access_token, issued.access_ttl_seconds
        )
        deps.cookies.set_refresh_token(
            response, issued.refresh_token, issued.refresh_ttl_seconds
        )
        return TokenPairResponse(
            access_token=issued.access_token,
            refresh_token=issued.refresh_token,
        )

    @router.get(
        "/self-identification",
        response_model=UserProfileResponse,
        responses=_ERRORS_401,
    )
    def self_identification(
        access_token: str | None = Cookie(default=None, alias=ACCESS_TOKEN_COOKIE),
    ) -> UserProfileResponse:
        """Return the profile of the authenticated caller."""
        user = deps.sessions.current_user(access_token)
        return UserProfileResponse.from_user(user)

    @router.put("/logout", response_model=StatusResponse, responses=_ERRORS_401)
    def logout(
        response: Response,
        _context: AuthContext = Depends(require_auth),
        refresh_token: str | None = Cookie(default=None, alias=REFRESH_TOKEN_COOKIE),
    ) -> StatusResponse:
        """Drop the stored refresh token and clear both cookies."""
        deps.sessions.logout(refresh_token)
        deps.cookies.clear(response)
        return StatusResponse()

    @router.post(
        "/refresh-token",
        response_model=AccessTokenResponse,
        dependencies=limited("refresh-token"),
        responses={**_ERRORS_401, **_ERRORS_429},
    )
    def refresh_token(
        response: Response,
        access_token: str | None = Cookie(default=None, alias=ACCESS_TOKEN_COOKIE),
        refresh_token: str | None = Cookie(default=None, alias=REFRESH_TOKEN_COOKIE),
    ) -> AccessTokenResponse:
        """Return the current access token or mint one from the refresh token."""
        outcome = deps.sessions.refresh(access_token, refresh_token)
        if outcome.minted:
            deps.cookies.set_access_token(
                response, outcome.access_token, outcome.access_ttl_seconds
            )
        return AccessTokenResponse(access_token=outcome.access_token)

    @router.put(
        "/forgot-password",
        response_model=StatusResponse,
        dependencies=limited("forgot-password"),
        responses={**_ERRORS_400, **_ERRORS_404, **_ERRORS_422, **_ERRORS_429},
    )
    def forgot_password(req: ForgotPasswordRequest) -> StatusResponse:
        """Email a time-limited password reset link."""
        deps.recovery.forgot_password(req)
        return StatusResponse()

    @router.put(
        "/reset-password/{token}",
        response_model=StatusResponse,
        dependencies=limited("reset-password"),
        responses={**_ERRORS_400, **_ERRORS_404, **_ERRORS_422, **_ERRORS_429},
    )
    def reset_password(token: str, req: ResetPasswordRequest) -> StatusResponse:
        """Set a new password using a reset token."""
        deps.recovery.reset_password(token, req)
        return StatusResponse()

    @router.put(
        "/change-password",
        response_model=StatusResponse,
        responses={**_ERRORS_400, **_ERRORS_401, **_ERRORS_422},
    )
    def change_password(
        req: ChangePasswordRequest,
        context: AuthContext = Depends(require_auth),
    ) -> StatusResponse:
        """Change the caller's password after verifying the old one."""
        deps.recovery.change_password(context, req)
        return StatusResponse()

    return router
