"""
Work item persistence.

Contract:
    ``WorkItemRepository`` is the port the fallback batch and the work item
    service depend on.  ``SqlAlchemyWorkItemRepository`` implements it and
    adds the conflict-tolerant bulk insert used by generation.

Eligibility:
    ``find_eligible_for_fallback`` narrows candidates in SQL with the
    time-independent part of the predicate (no expected quantity, PENDING,
    agreement ACTIVE) and then keeps only the rows for which
    ``rules.is_eligible_for_fallback`` holds.  The deadline comparison lives
    in exactly one place.

Failure modes:
    - ``save`` runs in a SAVEPOINT; a failing row is rolled back to the
      savepoint and the error propagates, leaving the session usable.
    - ``save`` re-reads the row and rejects writes made from a stale
      snapshot (row already CONFIRMED, or expected quantity changed since).
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from catering_kernel.domain import rules
from catering_kernel.domain.agreement import Agreement
from catering_kernel.domain.types import AgreementStatus, WorkItemStatus
from catering_kernel.domain.work_item import WorkItem
from catering_kernel.exceptions import (
    AlreadyConfirmedError,
    ExpectedAlreadySetError,
    WorkItemNotFoundError,
)
from catering_kernel.logging_config import get_logger
from catering_kernel.models.agreement import AgreementModel
from catering_kernel.models.work_item import WorkItemModel
from catering_kernel.repositories.base import BaseRepository

logger = get_logger("repositories.work_item")

_CONFLICT_COLUMNS = ["agreement_id", "service_date"]


class WorkItemRepository(Protocol):
    """Port used by the fallback batch and the work item service."""

    def find_by_id_with_agreement(
        self, work_item_id: UUID,
    ) -> tuple[WorkItem, Agreement] | None: ...

    def find_eligible_for_fallback(
        self, now: datetime,
    ) -> list[tuple[WorkItem, Agreement]]: ...

    def save(self, work_item: WorkItem) -> WorkItem: ...


class SqlAlchemyWorkItemRepository(BaseRepository):

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    def get(self, work_item_id: UUID) -> WorkItem | None:
        model = self.session.get(WorkItemModel, work_item_id)
        return model.to_dto() if model is not None else None

    def find_by_id_with_agreement(
        self,
        work_item_id: UUID,
    ) -> tuple[WorkItem, Agreement] | None:
        row = self.session.execute(
            select(WorkItemModel, AgreementModel)
            .join(AgreementModel, WorkItemModel.agreement_id == AgreementModel.id)
            .where(WorkItemModel.id == work_item_id)
        ).one_or_none()
        if row is None:
            return None
        item, agreement = row
        return item.to_dto(), agreement.to_dto()

    def find_eligible_for_fallback(
        self,
        now: datetime,
    ) -> list[tuple[WorkItem, Agreement]]:
        """Work items past their notice deadline with no expected quantity.

        Ordered by service date, then agreement, then id.  Only ACTIVE
        agreements are considered.
        """
        rows = self.session.execute(
            select(WorkItemModel, AgreementModel)
            .join(AgreementModel, WorkItemModel.agreement_id == AgreementModel.id)
            .where(
                WorkItemModel.expected_quantity.is_(None),
                WorkItemModel.status == WorkItemStatus.PENDING.value,
                AgreementModel.status == AgreementStatus.ACTIVE.value,
            )
            .order_by(
                WorkItemModel.service_date,
                WorkItemModel.agreement_id,
                WorkItemModel.id,
            )
        ).all()

        eligible: list[tuple[WorkItem, Agreement]] = []
        for item_model, agreement_model in rows:
            item = item_model.to_dto()
            agreement = agreement_model.to_dto()
            if rules.is_eligible_for_fallback(
                item.expected_quantity,
                item.expected_confirmed_at,
                item.status,
                item.service_date,
                agreement.notice_period_hours,
                now,
            ):
                eligible.append((item, agreement))
        return eligible

    def find_by_agreement_and_range(
        self,
        agreement_id: UUID,
        date_from: date,
        date_to: date,
    ) -> list[WorkItem]:
        rows = self.session.execute(
            select(WorkItemModel)
            .where(
                WorkItemModel.agreement_id == agreement_id,
                WorkItemModel.service_date >= date_from,
                WorkItemModel.service_date <= date_to,
            )
            .order_by(WorkItemModel.service_date)
        ).scalars()
        return [row.to_dto() for row in rows]

    # -----------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------

    def save(self, work_item: WorkItem) -> WorkItem:
        """
        Persist the new state of an existing work item inside a SAVEPOINT.

        Raises:
            WorkItemNotFoundError: No row for the id.
            AlreadyConfirmedError: The stored row is already CONFIRMED.
            ExpectedAlreadySetError: The stored expected quantity differs.
        """
        with self.session.begin_nested():
            model = self.session.execute(
                select(WorkItemModel)
                .where(WorkItemModel.id == work_item.work_item_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if model is None:
                raise WorkItemNotFoundError(str(work_item.work_item_id))
            if model.status == WorkItemStatus.CONFIRMED.value:
                raise AlreadyConfirmedError(str(work_item.work_item_id))
            if (
                model.expected_confirmed_at is not None
                and model.expected_quantity != work_item.expected_quantity
            ):
                raise ExpectedAlreadySetError(
                    str(work_item.work_item_id), model.expected_confirmed_at
                )
            model.apply(work_item)
            self.session.flush()
        return work_item

    def insert_missing(self, items: Sequence[WorkItem]) -> tuple[WorkItem, ...]:
        """
        Insert ``items``, ignoring any whose (agreement_id, service_date)
        already exists.

        Returns:
            Only the items that were actually inserted, in input order.
        """
        if not items:
            return ()

        values = [WorkItemModel.insert_values(item) for item in items]
        dialect = self.dialect_name
        if dialect == "postgresql":
            stmt = pg_insert(WorkItemModel).values(values)
        elif dialect == "sqlite":
            stmt = sqlite_insert(WorkItemModel).values(values)
        else:
            return self._insert_missing_one_by_one(items)

        stmt = stmt.on_conflict_do_nothing(index_elements=_CONFLICT_COLUMNS).returning(
            WorkItemModel.id
        )
        inserted_ids = set(self.session.execute(stmt).scalars())
        self.session.flush()

        logger.debug(
            "work_items_bulk_insert",
            extra={"candidates": len(items), "inserted": len(inserted_ids)},
        )
        return tuple(item for item in items if item.work_item_id in inserted_ids)

    def _insert_missing_one_by_one(
        self, items: Sequence[WorkItem],
    ) -> tuple[WorkItem, ...]:
        inserted: list[WorkItem] = []
        for item in items:
            try:
                with self.session.begin_nested():
                    self.session.add(WorkItemModel.from_dto(item))
                    self.session.flush()
            except IntegrityError:
                continue
            inserted.append(item)
        return tuple(inserted)
