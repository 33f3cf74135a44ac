"""
Agreement event handlers: notifications and analytics.

Every side effect is wrapped in ``IdempotencyLedger.process_once`` keyed by
``(event_id, "<Event>:<Effect>")`` so a redelivered event does not notify or
track twice.
"""

from __future__ import annotations

from typing import Any

from catering_kernel.domain import events
from catering_kernel.domain.events import DomainEvent
from catering_kernel.logging_config import get_logger
from catering_kernel.services.idempotency_service import IdempotencyLedger

from catering_services.events.bus import InMemoryEventBus
from catering_services.ports import AnalyticsPort, Notification, NotificationPort

logger = get_logger("services.event_handlers")

_HANDLER_PREFIX = {
    events.AGREEMENT_CREATED: "AgreementCreated",
    events.AGREEMENT_PAUSED: "AgreementPaused",
    events.AGREEMENT_RESUMED: "AgreementResumed",
    events.AGREEMENT_TERMINATED: "AgreementTerminated",
}

_SUBJECTS = {
    events.AGREEMENT_CREATED: "New catering agreement",
    events.AGREEMENT_PAUSED: "Catering agreement paused",
    events.AGREEMENT_RESUMED: "Catering agreement resumed",
    events.AGREEMENT_TERMINATED: "Catering agreement terminated",
}


def handler_name(event_type: str, effect: str) -> str:
    return f"{_HANDLER_PREFIX[event_type]}:{effect}"


class AgreementEventHandlers:

    def __init__(
        self,
        bus: InMemoryEventBus,
        ledger: IdempotencyLedger,
        notifications: NotificationPort,
        analytics: AnalyticsPort,
    ):
        self._ledger = ledger
        self._notifications = notifications
        self._analytics = analytics
        for event_type in _HANDLER_PREFIX:
            bus.subscribe(event_type, self.notify)
            bus.subscribe(event_type, self.track)

    def notify(self, event: DomainEvent) -> bool:
        """Send the party notification once per event."""
        return self._ledger.process_once(
            str(event.event_id),
            handler_name(event.event_type, "Notifications"),
            lambda: self._notifications.send(self._notification_for(event)),
            metadata={"event_type": event.event_type},
        ).executed

    def track(self, event: DomainEvent) -> bool:
        """Record the analytics event once per event."""
        return self._ledger.process_once(
            str(event.event_id),
            handler_name(event.event_type, "Analytics"),
            lambda: self._analytics.track(event.event_type, self._properties(event)),
            metadata={"event_type": event.event_type},
        ).executed

    def _notification_for(self, event: DomainEvent) -> Notification:
        payload = event.payload
        recipients = tuple(
            str(payload[key])
            for key in ("provider_id", "consumer_id")
            if payload.get(key)
        ) or (str(event.aggregate_id),)
        return Notification(
            recipient_ids=recipients,
            subject=_SUBJECTS[event.event_type],
            body=f"Agreement {event.aggregate_id}: {event.event_type}",
            data={"agreement_id": str(event.aggregate_id)},
        )

    @staticmethod
    def _properties(event: DomainEvent) -> dict[str, Any]:
        properties = dict(event.payload)
        properties["occurred_at"] = event.occurred_at.isoformat()
        return properties
