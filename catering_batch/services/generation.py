"""
WorkItemGenerator -- create work items for an agreement over a date window.

Contract:
    ``generate_for_agreement(agreement, date_from, date_to)`` creates one
    work item for every date in ``[date_from, date_to]`` whose ISO weekday is
    in the agreement's weekday set.  The caller chooses the window; the
    agreement's start and end dates do not narrow it.  Existing
    (agreement, date) rows are left alone.

Guarantees:
    - Idempotent: re-running an identical or overlapping range inserts only
      the missing dates.  Uniqueness is enforced by the datastore, not by a
      lock.
    - Returns only the rows created by this call.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol

from catering_kernel.domain.agreement import Agreement
from catering_kernel.domain.clock import Clock
from catering_kernel.domain.rules import service_dates_in_range
from catering_kernel.domain.work_item import WorkItem
from catering_kernel.logging_config import get_logger

logger = get_logger("batch.generation")


class WorkItemInserter(Protocol):
    def insert_missing(self, items: tuple[WorkItem, ...]) -> tuple[WorkItem, ...]: ...


class WorkItemGenerator:

    def __init__(self, repository: WorkItemInserter, clock: Clock):
        self._repository = repository
        self._clock = clock

    def generate_for_agreement(
        self,
        agreement: Agreement,
        date_from: date,
        date_to: date,
    ) -> tuple[WorkItem, ...]:
        """
        Raises:
            AgreementNotActiveError: If the agreement is not ACTIVE.
            ValueError: If ``date_from`` is after ``date_to``.
        """
        agreement.ensure_active()
        if date_from > date_to:
            raise ValueError(f"date_from {date_from} is after date_to {date_to}")

        dates = service_dates_in_range(date_from, date_to, agreement.weekdays)
        if not dates:
            return ()

        now = self._clock.now()
        candidates = tuple(
            WorkItem.new(agreement.agreement_id, d, now) for d in dates
        )
        created = self._repository.insert_missing(candidates)

        logger.info(
            "work_items_generated",
            extra={
                "agreement_id": str(agreement.agreement_id),
                "date_from": date_from.isoformat(),
                "date_to": date_to.isoformat(),
                "matching_dates": len(dates),
                "inserted": len(created),
            },
        )
        return created
