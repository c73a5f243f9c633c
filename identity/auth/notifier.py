"""Best-effort transactional email delivery through the background queue."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

import requests

from identity.core.config import EmailConfig
from identity.core.logging import redact_email
from identity.core.task_queue import TaskQueue

LOGGER = logging.getLogger(__name__)

EMAIL_TASK_TYPE = "email"


@dataclass(frozen=True)
class Notification:
    """Plain-text email addressed to one or more recipients."""

    to: list[str]
    subject: str
    text: str
    tags: dict[str, str] = field(default_factory=dict)


class Notifier(Protocol):
    """Schedules notifications; never raises for delivery problems."""

    def notify(self, notification: Notification) -> None: ...


class EmailSender:
    """Deliver emails through an HTTP email API (Resend-compatible).

    Without an API key messages are only logged, which keeps development and
    test environments offline.
    """

    def __init__(self, config: EmailConfig) -> None:
        self._config = config

    @property
    def is_configured(self) -> bool:
        return bool(self._config.api_key and self._config.api_url)

    def send(self, notification: Notification) -> None:
        """Send one email, raising on transport or API failure."""
        recipients = ", ".join(redact_email(address) for address in notification.to)
        if not self.is_configured:
            LOGGER.info(
                "email_dev_mode: to=%s subject=%s", recipients, notification.subject
            )
            return

        response = requests.post(
            self._config.api_url,
            headers={"Authorization": f"Bearer {self._config.api_key}"},
            json={
                "from": self._config.from_address,
                "to": notification.to,
                "subject": notification.subject,
                "text": notification.text,
            },
            timeout=self._config.timeout_seconds,
        )
        response.raise_for_status()
        LOGGER.info("email_sent: to=%s subject=%s", recipients, notification.subject)


class QueuedNotifier:
    """Notifier that hands emails to a ``TaskQueue`` and returns immediately."""

    def __init__(self, queue: TaskQueue, sender: EmailSender) -> None:
        self._queue = queue
        self._sender = sender
        queue.register_handler(EMAIL_TASK_TYPE, self._deliver)

    def notify(self, notification: Notification) -> None:
        """Schedule delivery; a full queue drops the email with a warning."""
        self._queue.submit(task_type=EMAIL_TASK_TYPE, payload=asdict(notification))

    def _deliver(self, payload: dict[str, Any]) -> None:
        self._sender.send(Notification(**payload))


def notify_safely(notifier: Notifier, notification: Notification) -> None:
    """Schedule a notification; scheduling failures are logged, not raised."""
    try:
        notifier.notify(notification)
    except Exception:
        LOGGER.exception(
            "notification_failed",
            extra={"task_type": notification.tags.get("kind", EMAIL_TASK_TYPE)},
        )


def confirmation_requested(name: str, email: str, confirmation_url: str) -> Notification:
    return Notification(
        to=[email],
        subject="Confirm Your Account",
        text=(
            f"Hey {name}, Please confirm your account by clicking on the link below"
            f"\n\n{confirmation_url}"
        ),
        tags={"kind": "account_confirmation"},
    )


def account_confirmed(email: str) -> Notification:
    return Notification(
        to=[email],
        subject="Account Confirmed",
        text="Your account has been confirmed",
        tags={"kind": "account_confirmed"},
    )


def password_reset_requested(
    name: str, email: str, reset_url: str, expiry_minutes: int
) -> Notification:
    return Notification(
        to=[email],
        subject="Account Password Reset Requested",
        text=(
            f"Hey {name}, Please reset your account password by clicking on the "
            f"link below\n\nLink will expire within {expiry_minutes} Minutes"
            f"\n\n{reset_url}"
        ),
        tags={"kind": "password_reset_requested"},
    )


def password_reset_completed(name: str, email: str) -> Notification:
    return Notification(
        to=[email],
        subject="Account Password Reset",
        text=f"Hey {name}, Your account password has been reset successfully.",
        tags={"kind": "password_reset"},
    )


def password_changed(name: str, email: str) -> Notification:
    return Notification(
        to=[email],
        subject="Password Changed",
        text=f"Hey {name}, Your account password has been changed successfully.",
        tags={"kind": "password_changed"},
    )
