"""
Outbound ports for event side effects, with logging adapters.

The logging adapters are what the scheduler process wires by default; real
delivery (email, push, analytics warehouse) plugs in behind the same
protocols.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from catering_kernel.logging_config import get_logger

logger = get_logger("services.ports")


@dataclass(frozen=True)
class Notification:
    recipient_ids: tuple[str, ...]
    subject: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)


class NotificationPort(Protocol):
    def send(self, notification: Notification) -> None: ...


class AnalyticsPort(Protocol):
    def track(self, event_name: str, properties: dict[str, Any]) -> None: ...


class LoggingNotificationAdapter:

    def send(self, notification: Notification) -> None:
        logger.info(
            "notification_sent",
            extra={
                "recipients": list(notification.recipient_ids),
                "subject": notification.subject,
            },
        )


class LoggingAnalyticsAdapter:

    def track(self, event_name: str, properties: dict[str, Any]) -> None:
        logger.info(
            "analytics_tracked",
            extra={"analytics_event": event_name, "properties": properties},
        )
