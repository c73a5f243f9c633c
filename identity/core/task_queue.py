"""Bounded in-process task queue for fire-and-forget background work."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable

LOGGER = logging.getLogger(__name__)

TaskHandler = Callable[[dict[str, Any]], None]

_STOP = object()


@dataclass(frozen=True)
class QueueSettings:
    """Queue runtime settings."""

    max_size: int = 1000
    workers: int = 1
    worker_poll_interval_seconds: float = 0.5


@dataclass
class QueueStats:
    """Counters describing queue activity since start-up."""

    submitted: int = 0
    completed: int = 0
    failed: int = 0
    dropped: int = 0


class TaskQueue:
    """Thread-backed queue: submitters never wait, failures are only logged.

    Tasks live in memory only. A task whose handler raises is logged and
    discarded; there is no retry.
    """

    def __init__(self, settings: QueueSettings) -> None:
        """Initialize bounded queue storage."""
        self._settings = settings
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=max(1, settings.max_size))
        self._handlers: dict[str, TaskHandler] = {}
        self._workers: list[threading.Thread] = []
        self._lock = threading.Lock()
        self._stats = QueueStats()

    def register_handler(self, task_type: str, handler: TaskHandler) -> None:
        """Register task handler by task type."""
        normalized_type = task_type.strip().lower()
        if not normalized_type:
            raise ValueError("task_type is required")
        self._handlers[normalized_type] = handler

    @property
    def running(self) -> bool:
        """Return whether worker threads are alive."""
        return any(worker.is_alive() for worker in self._workers)

    def start(self) -> None:
        """Start worker threads if not already running."""
        with self._lock:
            if self._workers and any(worker.is_alive() for worker in self._workers):
                return
            self._workers = [
                threading.Thread(
                    target=self._worker_loop,
                    name=f"task-queue-{index}",
                    daemon=True,
                )
                for index in range(max(1, self._settings.workers))
            ]
            for worker in self._workers:
                worker.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Drain already queued tasks, then stop worker threads."""
        with self._lock:
            workers = list(self._workers)
            self._workers = []
        for _ in workers:
            self._queue.put(_STOP)
        for worker in workers:
            worker.join(timeout=timeout)

    def submit(self, *, task_type: str, payload: dict[str, Any]) -> bool:
        """Enqueue task without blocking; return ``False`` when it was dropped."""
        task_kind = task_type.strip().lower()
        if not task_kind:
            raise ValueError("task_type is required")
        try:
            self._queue.put_nowait((task_kind, payload))
        except queue.Full:
            with self._lock:
                self._stats.dropped += 1
            LOGGER.warning("task_dropped_queue_full", extra={"task_type": task_kind})
            return False
        with self._lock:
            self._stats.submitted += 1
        return True

    def join(self) -> None:
        """Block until every submitted task has been processed."""
        self._queue.join()

    def stats(self) -> dict[str, int]:
        """Return a snapshot of queue counters and current depth."""
        with self._lock:
            return {
                "submitted": self._stats.submitted,
                "completed": self._stats.completed,
                "failed": self._stats.failed,
                "dropped": self._stats.dropped,
                "pending": self._queue.qsize(),
            }

    def _worker_loop(self) -> None:
        """Take tasks off the queue and run them until a stop marker arrives."""
        while True:
            try:
                item = self._queue.get(
                    timeout=self._settings.worker_poll_interval_seconds
                )
            except queue.Empty:
                continue
            try:
                if item is _STOP:
                    return
                task_type, payload = item
                self._run_task(task_type, payload)
            finally:
                self._queue.task_done()

    def _run_task(self, task_type: str, payload: dict[str, Any]) -> None:
        """Run one task and record its outcome."""
        handler = self._handlers.get(task_type)
        if handler is None:
            LOGGER.error("task_handler_not_found", extra={"task_type": task_type})
            with self._lock:
                self._stats.failed += 1
            return

        try:
            handler(payload)
        except Exception:
            LOGGER.exception("task_failed", extra={"task_type": task_type})
            with self._lock:
                self._stats.failed += 1
            return

        with self._lock:
            self._stats.completed += 1
