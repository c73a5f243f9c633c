"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import urlparse

DEVELOPMENT_ENVIRONMENT = "development"


@dataclass(frozen=True)
class ServerConfig:
    """Deployment-facing settings: environment, public URLs and API root."""

    environment: str
    server_url: str
    frontend_url: str
    api_prefix: str = "/api/v1"

    @property
    def is_development(self) -> bool:
        """Return whether the service runs in the development environment."""
        return self.environment == DEVELOPMENT_ENVIRONMENT

    @property
    def cookie_domain(self) -> str:
        """Return host portion of the configured server URL."""
        return urlparse(self.server_url).hostname or ""


@dataclass(frozen=True)
class AuthConfig:
    """Authentication-related configuration."""

    access_token_secret: str
    refresh_token_secret: str
    access_token_ttl_seconds: int = 3600
    refresh_token_ttl_seconds: int = 365 * 24 * 60 * 60
    issuer: str = "identity-service"
    password_hash_iterations: int = 120_000
    password_reset_ttl_minutes: int = 15


@dataclass(frozen=True)
class StorageConfig:
    """Identity store settings (MongoDB primary, JSON files as fallback)."""

    mongo_uri: str
    mongo_db: str
    fallback_dir: str


@dataclass(frozen=True)
class EmailConfig:
    """Transactional email delivery settings."""

    api_key: str
    api_url: str
    from_address: str
    timeout_seconds: int = 10


@dataclass(frozen=True)
class QueueConfig:
    """Background notification queue settings."""

    max_size: int = 1000
    workers: int = 1


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str]
    request_max_bytes: int
    rate_limit_max_requests: int
    rate_limit_window_seconds: int
    rate_limit_db_path: str


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    server: ServerConfig
    auth: AuthConfig
    storage: StorageConfig
    email: EmailConfig
    queue: QueueConfig
    logging: LoggingConfig
    security: SecurityConfig

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        environment = os.getenv("ENV", DEVELOPMENT_ENVIRONMENT).strip().lower()
        server_url = os.getenv("SERVER_URL", "http://localhost:3000").strip()
        frontend_url = (
            os.getenv("FRONTEND_URL", "http://localhost:5173").strip().rstrip("/")
        )
        api_prefix = os.getenv("API_PREFIX", "/api/v1").strip() or "/api/v1"

        access_secret = (
            os.getenv("ACCESS_TOKEN_SECRET", "").strip()
            or "dev-insecure-access-secret-change-me"
        )
        refresh_secret = (
            os.getenv("REFRESH_TOKEN_SECRET", "").strip()
            or "dev-insecure-refresh-secret-change-me"
        )
        access_ttl = int(os.getenv("ACCESS_TOKEN_TTL_SECONDS", "3600"))
        refresh_ttl = int(os.getenv("REFRESH_TOKEN_TTL_SECONDS", "31536000"))
        issuer = os.getenv("AUTH_ISSUER", "identity-service").strip() or "identity-service"
        hash_iterations = int(os.getenv("PASSWORD_HASH_ITERATIONS", "120000"))
        reset_ttl_minutes = int(os.getenv("PASSWORD_RESET_TTL_MINUTES", "15"))

        mongo_uri = os.getenv("MONGODB_URI", "").strip()
        mongo_db = os.getenv("MONGODB_DB", "identity").strip() or "identity"
        fallback_dir = (
            os.getenv("AUTH_STORE_DIR", "runtime/auth_store").strip()
            or "runtime/auth_store"
        )

        email_api_key = os.getenv("EMAIL_API_KEY", "").strip()
        email_api_url = (
            os.getenv("EMAIL_API_URL", "https://api.resend.com/emails").strip()
        )
        email_from = (
            os.getenv("EMAIL_FROM", "Identity <onboarding@resend.dev>").strip()
        )
        email_timeout = int(os.getenv("EMAIL_TIMEOUT_SECONDS", "10"))

        queue_max_size = int(os.getenv("NOTIFY_QUEUE_MAX_SIZE", "1000"))
        queue_workers = int(os.getenv("NOTIFY_QUEUE_WORKERS", "1"))

        log_level = os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"
        cors_allowed_origins = [
            origin.strip()
            for origin in os.getenv("CORS_ALLOWED_ORIGINS", frontend_url).split(",")
            if origin.strip()
        ]
        request_max_bytes = int(os.getenv("REQUEST_MAX_BYTES", str(64 * 1024)))
        rate_limit_max_requests = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "10"))
        rate_limit_window_seconds = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
        rate_limit_db_path = (
            os.getenv("RATE_LIMIT_DB_PATH", "runtime/app_state.db").strip()
            or "runtime/app_state.db"
        )

        return AppConfig(
            server=ServerConfig(
                environment=environment,
                server_url=server_url,
                frontend_url=frontend_url,
                api_prefix=api_prefix,
            ),
            auth=AuthConfig(
                access_token_secret=access_secret,
                refresh_token_secret=refresh_secret,
                access_token_ttl_seconds=access_ttl,
                refresh_token_ttl_seconds=refresh_ttl,
                issuer=issuer,
                password_hash_iterations=hash_iterations,
                password_reset_ttl_minutes=reset_ttl_minutes,
            ),
            storage=StorageConfig(
                mongo_uri=mongo_uri,
                mongo_db=mongo_db,
                fallback_dir=fallback_dir,
            ),
            email=EmailConfig(
                api_key=email_api_key,
                api_url=email_api_url,
                from_address=email_from,
                timeout_seconds=email_timeout,
            ),
            queue=QueueConfig(max_size=queue_max_size, workers=queue_workers),
            logging=LoggingConfig(level=log_level),
            security=SecurityConfig(
                cors_allowed_origins=cors_allowed_origins,
                request_max_bytes=request_max_bytes,
                rate_limit_max_requests=rate_limit_max_requests,
                rate_limit_window_seconds=rate_limit_window_seconds,
                rate_limit_db_path=rate_limit_db_path,
            ),
        )
