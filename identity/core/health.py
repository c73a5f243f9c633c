"""Process and host health snapshot used by the health endpoint."""

from __future__ import annotations

import time
from typing import Any

import psutil

_PROCESS = psutil.Process()
_PROCESS_STARTED_AT = time.monotonic()


def _megabytes(value: float) -> str:
    return f"{value / 1024 / 1024:.2f} MB"


def get_application_health(environment: str) -> dict[str, Any]:
    """Return environment, uptime and current memory usage of this process."""
    memory = _PROCESS.memory_info()
    return {
        "environment": environment,
        "uptime": f"{time.monotonic() - _PROCESS_STARTED_AT:.2f} Second",
        "memory_usage": {"rss": _megabytes(memory.rss), "vms": _megabytes(memory.vms)},
    }


def get_system_health() -> dict[str, Any]:
    """Return load average and memory totals of the host."""
    memory = psutil.virtual_memory()
    return {
        "cpu_usage": [round(value, 2) for value in psutil.getloadavg()],
        "total_memory": _megabytes(memory.total),
        "free_memory": _megabytes(memory.available),
    }
