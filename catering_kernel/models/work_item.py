"""
ORM model for work items (one row per agreement and service date).

Invariants enforced:
    UNIQUE(agreement_id, service_date) -- generation inserts with
    ON CONFLICT DO NOTHING against this constraint.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from catering_kernel.db.base import TimestampedBase, UUIDString
from catering_kernel.domain.types import WorkItemStatus
from catering_kernel.domain.work_item import WorkItem


class WorkItemModel(TimestampedBase):
    __tablename__ = "work_items"

    __table_args__ = (
        UniqueConstraint(
            "agreement_id", "service_date", name="uq_work_items_agreement_date"
        ),
        Index("ix_work_items_service_date", "service_date"),
        Index("ix_work_items_agreement_status", "agreement_id", "status"),
    )

    agreement_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("agreements.id", ondelete="CASCADE"),
        nullable=False,
    )
    service_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    served_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    expected_confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    served_confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WorkItemStatus.PENDING.value,
    )

    def to_dto(self) -> WorkItem:
        return WorkItem(
            work_item_id=self.id,
            agreement_id=self.agreement_id,
            service_date=self.service_date,
            status=WorkItemStatus(self.status),
            created_at=self.created_at,
            updated_at=self.updated_at,
            expected_quantity=self.expected_quantity,
            served_quantity=self.served_quantity,
            expected_confirmed_at=self.expected_confirmed_at,
            served_confirmed_at=self.served_confirmed_at,
        )

    @classmethod
    def from_dto(cls, dto: WorkItem) -> WorkItemModel:
        model = cls(
            id=dto.work_item_id,
            agreement_id=dto.agreement_id,
            service_date=dto.service_date,
            created_at=dto.created_at,
        )
        model.apply(dto)
        return model

    def apply(self, dto: WorkItem) -> None:
        self.expected_quantity = dto.expected_quantity
        self.served_quantity = dto.served_quantity
        self.expected_confirmed_at = dto.expected_confirmed_at
        self.served_confirmed_at = dto.served_confirmed_at
        self.status = dto.status.value
        self.updated_at = dto.updated_at

    @staticmethod
    def insert_values(dto: WorkItem) -> dict:
        """Column values for a core INSERT of a freshly generated item."""
        return {
            "id": dto.work_item_id,
            "agreement_id": dto.agreement_id,
            "service_date": dto.service_date,
            "status": dto.status.value,
            "created_at": dto.created_at,
            "updated_at": dto.updated_at,
        }
