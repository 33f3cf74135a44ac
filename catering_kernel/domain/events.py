"""
Typed domain events raised by agreement state transitions.

Each event carries the aggregate id, a structured JSON-safe payload and the
occurrence timestamp taken from the injected clock.  Events are frozen; the
outbox stores ``to_dict()`` and the relay rebuilds them with ``from_dict()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from catering_kernel.domain.agreement import Agreement


AGGREGATE_AGREEMENT = "Agreement"

AGREEMENT_CREATED = "agreement.created"
AGREEMENT_PAUSED = "agreement.paused"
AGREEMENT_RESUMED = "agreement.resumed"
AGREEMENT_TERMINATED = "agreement.terminated"


@dataclass(frozen=True)
class DomainEvent:
    event_type: str
    aggregate_type: str
    aggregate_id: UUID
    payload: dict[str, Any]
    occurred_at: datetime
    correlation_id: str | None = None
    event_id: UUID = field(default_factory=uuid4)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": str(self.event_id),
            "event_type": self.event_type,
            "aggregate_type": self.aggregate_type,
            "aggregate_id": str(self.aggregate_id),
            "payload": self.payload,
            "occurred_at": self.occurred_at.isoformat(),
            "correlation_id": self.correlation_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DomainEvent:
        return cls(
            event_type=data["event_type"],
            aggregate_type=data["aggregate_type"],
            aggregate_id=UUID(data["aggregate_id"]),
            payload=dict(data["payload"]),
            occurred_at=datetime.fromisoformat(data["occurred_at"]),
            correlation_id=data.get("correlation_id"),
            event_id=UUID(data["event_id"]),
        )


def agreement_created(
    agreement: Agreement,
    correlation_id: str | None = None,
) -> DomainEvent:
    return DomainEvent(
        event_type=AGREEMENT_CREATED,
        aggregate_type=AGGREGATE_AGREEMENT,
        aggregate_id=agreement.agreement_id,
        payload={
            "agreement_id": str(agreement.agreement_id),
            "provider_id": str(agreement.provider_id),
            "consumer_id": str(agreement.consumer_id),
            "start_date": agreement.start_date.isoformat(),
            "end_date": agreement.end_date.isoformat() if agreement.end_date else None,
            "price_per_unit": str(agreement.price_per_unit),
            "min_daily_quantity": agreement.min_daily_quantity,
            "max_daily_quantity": agreement.max_daily_quantity,
            "weekdays": sorted(agreement.weekdays),
        },
        occurred_at=agreement.created_at,
        correlation_id=correlation_id,
    )


def agreement_status_changed(
    event_type: str,
    agreement_id: UUID,
    previous_status: str,
    new_status: str,
    changed_at: datetime,
    correlation_id: str | None = None,
) -> DomainEvent:
    """Paused / resumed events share the status-change payload."""
    return DomainEvent(
        event_type=event_type,
        aggregate_type=AGGREGATE_AGREEMENT,
        aggregate_id=agreement_id,
        payload={
            "agreement_id": str(agreement_id),
            "previous_status": previous_status,
            "new_status": new_status,
            "changed_at": changed_at.isoformat(),
        },
        occurred_at=changed_at,
        correlation_id=correlation_id,
    )


def agreement_terminated(
    agreement: Agreement,
    previous_status: str,
    terminated_at: datetime,
    correlation_id: str | None = None,
) -> DomainEvent:
    return DomainEvent(
        event_type=AGREEMENT_TERMINATED,
        aggregate_type=AGGREGATE_AGREEMENT,
        aggregate_id=agreement.agreement_id,
        payload={
            "agreement_id": str(agreement.agreement_id),
            "provider_id": str(agreement.provider_id),
            "consumer_id": str(agreement.consumer_id),
            "previous_status": previous_status,
            "terminated_at": terminated_at.isoformat(),
        },
        occurred_at=terminated_at,
        correlation_id=correlation_id,
    )


def agreement_paused(
    agreement_id: UUID,
    paused_at: datetime,
    correlation_id: str | None = None,
) -> DomainEvent:
    return agreement_status_changed(
        AGREEMENT_PAUSED, agreement_id, "ACTIVE", "PAUSED", paused_at, correlation_id
    )


def agreement_resumed(
    agreement_id: UUID,
    resumed_at: datetime,
    correlation_id: str | None = None,
) -> DomainEvent:
    return agreement_status_changed(
        AGREEMENT_RESUMED, agreement_id, "PAUSED", "ACTIVE", resumed_at, correlation_id
    )
