"""Per-client request admission for sensitive endpoints, backed by SQLite."""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from threading import Lock
from typing import Callable

from fastapi import Request

from identity.api.errors import ApiError, ApiErrorCode
from identity.core.migrations import apply_migrations

LOGGER = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    """Return the peer address of a request."""
    return (request.client.host if request.client else "") or "unknown"


class RequestRateLimiter:
    """Fixed-window request counter keyed by (scope, client ip).

    Closed windows are deleted at most once per window length while
    requests are being admitted.
    """

    def __init__(
        self,
        *,
        database_path: Path,
        max_requests: int,
        window_seconds: int,
    ) -> None:
        """Initialize limiter storage and policy parameters."""
        apply_migrations(database_path)
        self._connection = sqlite3.connect(str(database_path), check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = Lock()
        self._max_requests = max(1, int(max_requests))
        self._window_seconds = max(1, int(window_seconds))
        self._next_purge_at = 0

    def assert_allowed(self, *, scope: str, client_key: str) -> None:
        """Count one request and raise 429 once the window budget is spent."""
        now = int(time.time())
        key = client_key.strip() or "unknown"
        with self._lock:
            if now >= self._next_purge_at:
                self._delete_closed_windows(now)
            row = self._connection.execute(
                """
                SELECT window_started_at, request_count
                FROM request_rate_limits
                WHERE scope = ? AND client_key = ?
                """,
                (scope, key),
            ).fetchone()

            if row is None or now - int(row["window_started_at"]) >= self._window_seconds:
                window_started_at = now
                request_count = 1
            else:
                window_started_at = int(row["window_started_at"])
                request_count = int(row["request_count"]) + 1

            self._connection.execute(
                """
                INSERT INTO request_rate_limits(
                  scope, client_key, window_started_at, request_count
                ) VALUES (?, ?, ?, ?)
                ON CONFLICT(scope, client_key) DO UPDATE SET
                  window_started_at = excluded.window_started_at,
                  request_count = excluded.request_count
                """,
                (scope, key, window_started_at, request_count),
            )
            self._connection.commit()

        if request_count > self._max_requests:
            retry_after = max(1, window_started_at + self._window_seconds - now)
            LOGGER.warning("rate_limited: scope=%s", scope)
            raise ApiError(
                status_code=429,
                error_code=ApiErrorCode.RATE_LIMITED,
                message=(
                    "Too many requests! Please try again after "
                    f"{retry_after} seconds."
                ),
            )

    def dependency(self, scope: str) -> Callable[[Request], None]:
        """Return a FastAPI dependency guarding a route under ``scope``."""

        def _guard(request: Request) -> None:
            self.assert_allowed(scope=scope, client_key=client_ip(request))

        return _guard

    def _delete_closed_windows(self, now: int) -> int:
        cursor = self._connection.execute(
            "DELETE FROM request_rate_limits WHERE window_started_at <= ?",
            (now - self._window_seconds,),
        )
        self._connection.commit()
        self._next_purge_at = now + self._window_seconds
        return cursor.rowcount

    def purge_expired(self) -> int:
        """Delete counters whose window has closed; return removed rows."""
        with self._lock:
            return self._delete_closed_windows(int(time.time()))

    def close(self) -> None:
        """Close SQLite resources."""
        with self._lock:
            self._connection.close()
