"""Public API response contracts."""

from identity.api.contracts.models import (
    SUCCESS_MESSAGE,
    AccessTokenResponse,
    ApiErrorResponse,
    HealthResponse,
    RegisterResponse,
    StatusResponse,
    TokenPairResponse,
    UserProfileResponse,
)

__all__ = [
    "SUCCESS_MESSAGE",
    "AccessTokenResponse",
    "ApiErrorResponse",
    "HealthResponse",
    "RegisterResponse",
    "StatusResponse",
    "TokenPairResponse",
    "UserProfileResponse",
]
