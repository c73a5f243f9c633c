"""Service routes (self, health) and background-worker lifecycle hooks."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from fastapi import FastAPI

from identity.api.contracts import HealthResponse, StatusResponse
from identity.core.config import AppConfig
from identity.core.health import get_application_health, get_system_health
from identity.core.task_queue import TaskQueue


@dataclass(frozen=True)
class SystemRouteDeps:
    """Dependencies required to mount service routes."""

    config: AppConfig
    task_queue: TaskQueue
    storage_backend: str
    on_shutdown: Callable[[], None]


def register_system_routes(app: FastAPI, *, deps: SystemRouteDeps) -> None:
    """Register self/health endpoints and start/stop the notification queue."""
    prefix = deps.config.server.api_prefix

    @app.on_event("startup")
    def startup_task_queue() -> None:
        deps.task_queue.start()

    @app.on_event("shutdown")
    def shutdown_task_queue() -> None:
        deps.task_queue.stop()
        deps.on_shutdown()

    @app.get(f"{prefix}/self", response_model=StatusResponse, tags=["system"])
    def self_check() -> StatusResponse:
        return StatusResponse()

    @app.get(f"{prefix}/health", response_model=HealthResponse, tags=["system"])
    def health() -> HealthResponse:
        application = get_application_health(deps.config.server.environment)
        application["storage_backend"] = deps.storage_backend
        application["notification_queue"] = deps.task_queue.stats()
        return HealthResponse(
            application=application,
            system=get_system_health(),
            timestamp=int(time.time() * 1000),
        )
