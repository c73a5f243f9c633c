from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest
import requests

from identity.auth import notifier as notifier_module
from identity.auth.notifier import (
    EmailSender,
    Notification,
    QueuedNotifier,
    confirmation_requested,
    notify_safely,
    password_reset_requested,
)
from identity.core.config import EmailConfig
from identity.core.task_queue import QueueSettings, TaskQueue
from tests.fakes import FailingNotifier


@dataclass
class _Sender:
    sent: list[Notification] = field(default_factory=list)

    def send(self, notification: Notification) -> None:
        self.sent.append(notification)


@dataclass
class _Response:
    status_code: int

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"status {self.status_code}")


def _email_config(api_key: str = "key-123") -> EmailConfig:
    return EmailConfig(
        api_key=api_key,
        api_url="https://mail.example.com/emails",
        from_address="Identity <no-reply@example.com>",
        timeout_seconds=3,
    )


def test_queued_notifier_delivers_through_background_queue() -> None:
    queue = TaskQueue(QueueSettings(max_size=5, workers=1, worker_poll_interval_seconds=0.01))
    sender = _Sender()
    notifier = QueuedNotifier(queue, sender)

    queue.start()
    notifier.notify(confirmation_requested("Alice", "a@x.com", "http://f/confirmation/t?code=1"))
    queue.join()
    queue.stop()

    assert len(sender.sent) == 1
    assert sender.sent[0].to == ["a@x.com"]
    assert sender.sent[0].subject == "Confirm Your Account"


def test_email_sender_posts_to_api(monkeypatch) -> None:
    captured: dict[str, Any] = {}

    def fake_post(url: str, **kwargs: Any) -> _Response:
        captured["url"] = url
        captured.update(kwargs)
        return _Response(status_code=200)

    monkeypatch.setattr(notifier_module.requests, "post", fake_post)

    EmailSender(_email_config()).send(
        password_reset_requested("Alice", "a@x.com", "http://f/reset-password/t", 15)
    )

    assert captured["url"] == "https://mail.example.com/emails"
    assert captured["headers"] == {"Authorization": "Bearer key-123"}
    assert captured["json"]["to"] == ["a@x.com"]
    assert captured["json"]["from"] == "Identity <no-reply@example.com>"
    assert "15 Minutes" in captured["json"]["text"]
    assert captured["timeout"] == 3


def test_email_sender_raises_on_api_error(monkeypatch) -> None:
    monkeypatch.setattr(
        notifier_module.requests, "post", lambda url, **kwargs: _Response(502)
    )

    with pytest.raises(requests.HTTPError):
        EmailSender(_email_config()).send(
            confirmation_requested("Alice", "a@x.com", "http://f")
        )


def test_email_sender_without_api_key_only_logs(monkeypatch) -> None:
    def fail_post(url: str, **kwargs: Any) -> _Response:
        raise AssertionError("no HTTP call expected")

    monkeypatch.setattr(notifier_module.requests, "post", fail_post)
    sender = EmailSender(_email_config(api_key=""))

    sender.send(confirmation_requested("Alice", "a@x.com", "http://f"))

    assert sender.is_configured is False


def test_notify_safely_swallows_notifier_errors() -> None:
    notifier = FailingNotifier()

    notify_safely(notifier, confirmation_requested("Alice", "a@x.com", "http://f"))

    assert notifier.calls == 1
