"""
ORM model for the transactional outbox.

Domain events are written in the same transaction as the state change that
raised them; the relay publishes them afterwards.

Status lifecycle:
    PENDING -> PROCESSING -> PROCESSED
    PROCESSING -> PENDING (retry with backoff) -> ... -> DEAD
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from catering_kernel.db.base import Base, UUIDString
from catering_kernel.domain.events import DomainEvent

DEFAULT_MAX_RETRIES = 5


class OutboxStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    DEAD = "DEAD"


class OutboxEventModel(Base):
    __tablename__ = "outbox_events"

    __table_args__ = (
        Index("ix_outbox_events_status_next", "status", "next_attempt_at"),
        Index("ix_outbox_events_aggregate", "aggregate_type", "aggregate_id"),
    )

    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    aggregate_type: Mapped[str] = mapped_column(String(100), nullable=False)
    aggregate_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    correlation_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OutboxStatus.PENDING.value,
    )
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_retries: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_MAX_RETRIES,
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    next_attempt_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    locked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    locked_by: Mapped[str | None] = mapped_column(String(200), nullable=True)

    @classmethod
    def from_event(
        cls,
        event: DomainEvent,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> OutboxEventModel:
        return cls(
            id=event.event_id,
            event_type=event.event_type,
            aggregate_type=event.aggregate_type,
            aggregate_id=event.aggregate_id,
            payload=event.payload,
            occurred_at=event.occurred_at,
            correlation_id=event.correlation_id,
            status=OutboxStatus.PENDING.value,
            retry_count=0,
            max_retries=max_retries,
            next_attempt_at=event.occurred_at,
        )

    def to_event(self) -> DomainEvent:
        return DomainEvent(
            event_type=self.event_type,
            aggregate_type=self.aggregate_type,
            aggregate_id=self.aggregate_id,
            payload=dict(self.payload),
            occurred_at=self.occurred_at,
            correlation_id=self.correlation_id,
            event_id=self.id,
        )
