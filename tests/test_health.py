from __future__ import annotations

from types import SimpleNamespace

from identity.core import health as health_module

MB = 1024 * 1024


class _Process:
    def __init__(self, rss: int) -> None:
        self.rss = rss

    def memory_info(self) -> SimpleNamespace:
        return SimpleNamespace(rss=self.rss, vms=4 * self.rss)


def test_application_health_reports_current_rss(monkeypatch) -> None:
    process = _Process(rss=300 * MB)
    monkeypatch.setattr(health_module, "_PROCESS", process)

    before = health_module.get_application_health("test")
    process.rss = 40 * MB
    after = health_module.get_application_health("test")

    assert before["environment"] == "test"
    assert before["uptime"].endswith(" Second")
    assert before["memory_usage"] == {"rss": "300.00 MB", "vms": "1200.00 MB"}
    assert after["memory_usage"]["rss"] == "40.00 MB"


def test_system_health_reports_load_and_available_memory(monkeypatch) -> None:
    monkeypatch.setattr(
        health_module.psutil,
        "virtual_memory",
        lambda: SimpleNamespace(total=2048 * MB, available=512 * MB),
    )
    monkeypatch.setattr(health_module.psutil, "getloadavg", lambda: (0.5, 0.25, 1.0))

    snapshot = health_module.get_system_health()

    assert snapshot == {
        "cpu_usage": [0.5, 0.25, 1.0],
        "total_memory": "2048.00 MB",
        "free_memory": "512.00 MB",
    }
