"""
ORM model for catering agreements.

Contract:
    AgreementModel persists the immutable ``Agreement`` entity.  Weekdays are
    stored as a sorted JSON list of ISO weekday numbers.  ``to_dto()`` /
    ``from_dto()`` convert to and from the domain entity.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Date, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from catering_kernel.db.base import TimestampedBase, UUIDString
from catering_kernel.domain.agreement import Agreement
from catering_kernel.domain.types import AgreementStatus


class AgreementModel(TimestampedBase):
    __tablename__ = "agreements"

    __table_args__ = (
        Index("ix_agreements_status", "status"),
        Index("ix_agreements_parties", "provider_id", "consumer_id"),
    )

    provider_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    consumer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    price_per_unit: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    min_daily_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    max_daily_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    notice_period_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    weekdays: Mapped[list] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    def to_dto(self) -> Agreement:
        return Agreement(
            agreement_id=self.id,
            provider_id=self.provider_id,
            consumer_id=self.consumer_id,
            price_per_unit=Decimal(self.price_per_unit),
            min_daily_quantity=self.min_daily_quantity,
            max_daily_quantity=self.max_daily_quantity,
            notice_period_hours=self.notice_period_hours,
            weekdays=frozenset(self.weekdays),
            status=AgreementStatus(self.status),
            start_date=self.start_date,
            end_date=self.end_date,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_dto(cls, dto: Agreement) -> AgreementModel:
        model = cls(id=dto.agreement_id)
        model.apply(dto)
        model.created_at = dto.created_at
        return model

    def apply(self, dto: Agreement) -> None:
        """Copy mutable-by-replacement fields from ``dto`` onto this row."""
        self.provider_id = dto.provider_id
        self.consumer_id = dto.consumer_id
        self.price_per_unit = dto.price_per_unit
        self.min_daily_quantity = dto.min_daily_quantity
        self.max_daily_quantity = dto.max_daily_quantity
        self.notice_period_hours = dto.notice_period_hours
        self.weekdays = sorted(dto.weekdays)
        self.status = dto.status.value
        self.start_date = dto.start_date
        self.end_date = dto.end_date
        self.updated_at = dto.updated_at
