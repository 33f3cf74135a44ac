"""
In-process publish/subscribe for domain events.

Handlers run synchronously in subscription order.  A handler exception
propagates to the publisher so the outbox relay can retry the event.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable

from catering_kernel.domain.events import DomainEvent
from catering_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.event_bus")

EventHandler = Callable[[DomainEvent], None]


class InMemoryEventBus:

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    def handlers_for(self, event_type: str) -> tuple[EventHandler, ...]:
        return tuple(self._handlers.get(event_type, ()))

    def publish(self, event: DomainEvent) -> int:
        """Deliver ``event`` to every subscriber.  Returns the handler count."""
        handlers = self.handlers_for(event.event_type)
        with LogContext.bind(
            event_id=str(event.event_id),
            correlation_id=event.correlation_id,
        ):
            if not handlers:
                logger.debug(
                    "event_has_no_subscribers",
                    extra={"event_type": event.event_type},
                )
            for handler in handlers:
                handler(event)
        return len(handlers)
