"""
WorkItem -- one service day under an agreement.

Invariants:
    - ``expected_quantity`` is immutable once ``expected_confirmed_at`` is set.
    - PENDING -> CONFIRMED happens exactly once, through ``confirm_served``.

Every operation returns a new ``WorkItem``; nothing here mutates.  Agreement
bounds are never cached on the item; callers pass ``AgreementTerms`` read from
the agreement when the operation happens.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from uuid import UUID, uuid4

from catering_kernel.domain import rules
from catering_kernel.domain.agreement import AgreementTerms
from catering_kernel.domain.types import WorkItemStatus
from catering_kernel.exceptions import (
    AlreadyConfirmedError,
    ExpectedAlreadySetError,
    InvalidQuantityError,
    NoticePeriodExceededError,
    QuantityOutOfRangeError,
)


@dataclass(frozen=True)
class WorkItem:
    work_item_id: UUID
    agreement_id: UUID
    service_date: date
    status: WorkItemStatus
    created_at: datetime
    updated_at: datetime
    expected_quantity: int | None = None
    served_quantity: int | None = None
    expected_confirmed_at: datetime | None = None
    served_confirmed_at: datetime | None = None

    @classmethod
    def new(
        cls,
        agreement_id: UUID,
        service_date: date,
        now: datetime,
        work_item_id: UUID | None = None,
    ) -> WorkItem:
        return cls(
            work_item_id=work_item_id or uuid4(),
            agreement_id=agreement_id,
            service_date=service_date,
            status=WorkItemStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_confirmed(self) -> bool:
        return self.status == WorkItemStatus.CONFIRMED

    def confirm_expected(
        self,
        quantity: int,
        terms: AgreementTerms,
        now: datetime,
    ) -> WorkItem:
        """Record the consumer's expected quantity.

        Guards are checked in this order: already confirmed, expected already
        set, notice deadline passed, quantity outside the agreement bounds.
        """
        if self.is_confirmed:
            raise AlreadyConfirmedError(str(self.work_item_id))
        if self.expected_confirmed_at is not None:
            raise ExpectedAlreadySetError(
                str(self.work_item_id), self.expected_confirmed_at
            )
        if not rules.is_within_notice_period(
            self.service_date, terms.notice_period_hours, now
        ):
            raise NoticePeriodExceededError(
                rules.notice_deadline(self.service_date, terms.notice_period_hours),
                terms.notice_period_hours,
            )
        if not rules.is_quantity_in_range(
            quantity, terms.min_daily_quantity, terms.max_daily_quantity
        ):
            raise QuantityOutOfRangeError(
                quantity, terms.min_daily_quantity, terms.max_daily_quantity
            )
        return replace(
            self,
            expected_quantity=quantity,
            expected_confirmed_at=now,
            updated_at=now,
        )

    def confirm_served(self, quantity: int, now: datetime) -> WorkItem:
        """Record the provider's served quantity and close the item."""
        if self.is_confirmed:
            raise AlreadyConfirmedError(str(self.work_item_id))
        if quantity < 0:
            raise InvalidQuantityError(quantity)
        return replace(
            self,
            served_quantity=quantity,
            served_confirmed_at=now,
            status=WorkItemStatus.CONFIRMED,
            updated_at=now,
        )

    def apply_fallback(self, min_quantity: int, now: datetime) -> WorkItem | None:
        """Fill the expected quantity with the agreement minimum.

        Returns None when there is nothing to do (already confirmed, or an
        expected quantity is already set).  Status stays PENDING.
        """
        if self.is_confirmed or self.expected_quantity is not None:
            return None
        return replace(
            self,
            expected_quantity=min_quantity,
            expected_confirmed_at=now,
            updated_at=now,
        )

    def needs_fallback(self) -> bool:
        return self.expected_quantity is None and self.status == WorkItemStatus.PENDING

    def is_eligible_for_fallback(
        self,
        notice_period_hours: int,
        now: datetime,
    ) -> bool:
        return rules.is_eligible_for_fallback(
            self.expected_quantity,
            self.expected_confirmed_at,
            self.status,
            self.service_date,
            notice_period_hours,
            now,
        )

    def notice_deadline(self, notice_period_hours: int) -> datetime:
        return rules.notice_deadline(self.service_date, notice_period_hours)
