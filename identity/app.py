"""FastAPI application factory wiring workflows, storage and transport."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from identity.api.http_setup import register_exception_handlers, register_http_middleware
from identity.api.system_routes import SystemRouteDeps, register_system_routes
from identity.auth.confirmation import ConfirmationWorkflow
from identity.auth.cookies import SessionCookies
from identity.auth.notifier import EmailSender, Notifier, QueuedNotifier
from identity.auth.rate_limiter import RequestRateLimiter
from identity.auth.recovery import PasswordRecoveryWorkflow
from identity.auth.repository import IdentityRepository
from identity.auth.router import AuthRouteDeps, create_auth_router
from identity.auth.session import SessionManager
from identity.core.config import AppConfig
from identity.core.security import Pbkdf2PasswordHasher, SignedTokenCodec
from identity.core.task_queue import QueueSettings, TaskQueue

LOGGER = logging.getLogger(__name__)


def create_app(
    config: AppConfig,
    *,
    app_root: Path,
    repo: IdentityRepository | None = None,
    notifier: Notifier | None = None,
) -> FastAPI:
    """Build the identity API; ``repo``/``notifier`` override the defaults."""
    app = FastAPI(title="Identity API", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )
    register_http_middleware(app, config=config, logger=LOGGER)
    register_exception_handlers(app, logger=LOGGER)

    if repo is None:
        repo = IdentityRepository(
            config.storage,
            refresh_ttl_seconds=config.auth.refresh_token_ttl_seconds,
            app_root=app_root,
        )
    task_queue = TaskQueue(
        QueueSettings(max_size=config.queue.max_size, workers=config.queue.workers)
    )
    if notifier is None:
        notifier = QueuedNotifier(task_queue, EmailSender(config.email))

    hasher = Pbkdf2PasswordHasher(config.auth.password_hash_iterations)
    access_codec = SignedTokenCodec(
        secret_key=config.auth.access_token_secret,
        ttl_seconds=config.auth.access_token_ttl_seconds,
        issuer=config.auth.issuer,
    )
    refresh_codec = SignedTokenCodec(
        secret_key=config.auth.refresh_token_secret,
        ttl_seconds=config.auth.refresh_token_ttl_seconds,
        issuer=config.auth.issuer,
    )

    rate_limit_db = Path(config.security.rate_limit_db_path)
    if not rate_limit_db.is_absolute():
        rate_limit_db = app_root / rate_limit_db
    rate_limiter = RequestRateLimiter(
        database_path=rate_limit_db,
        max_requests=config.security.rate_limit_max_requests,
        window_seconds=config.security.rate_limit_window_seconds,
    )

    deps = AuthRouteDeps(
        confirmation=ConfirmationWorkflow(
            repo=repo, hasher=hasher, notifier=notifier, server=config.server
        ),
        sessions=SessionManager(
            repo=repo,
            hasher=hasher,
            access_codec=access_codec,
            refresh_codec=refresh_codec,
        ),
        recovery=PasswordRecoveryWorkflow(
            repo=repo,
            hasher=hasher,
            notifier=notifier,
            server=config.server,
            reset_ttl_minutes=config.auth.password_reset_ttl_minutes,
        ),
        cookies=SessionCookies(config),
        rate_limiter=rate_limiter,
    )
    app.include_router(create_auth_router(deps, prefix=config.server.api_prefix))

    def on_shutdown() -> None:
        rate_limiter.close()
        repo.close()

    register_system_routes(
        app,
        deps=SystemRouteDeps(
            config=config,
            task_queue=task_queue,
            storage_backend=repo.backend,
            on_shutdown=on_shutdown,
        ),
    )
    LOGGER.info("app_created: storage=%s", repo.backend)
    return app
