"""Domain event delivery: in-process bus, outbox relay, agreement handlers."""

from catering_services.events.bus import InMemoryEventBus
from catering_services.events.handlers import AgreementEventHandlers
from catering_services.events.outbox_relay import OutboxRelay, RelayRunResult

__all__ = [
    "AgreementEventHandlers",
    "InMemoryEventBus",
    "OutboxRelay",
    "RelayRunResult",
]
