"""
WorkItemService -- single-item confirmations by agreement parties.

Contract:
    ``confirm_expected`` is for the consumer, ``confirm_served`` for the
    provider.  Every guard failure and every persistence error propagates to
    the caller; there is no other item to fall back to.

Guard order:
    work item exists -> agreement ACTIVE -> caller is the right party ->
    entity guards (see ``WorkItem``).
"""

from __future__ import annotations

from uuid import UUID

from catering_kernel.domain.agreement import Agreement
from catering_kernel.domain.clock import Clock
from catering_kernel.domain.work_item import WorkItem
from catering_kernel.exceptions import WorkItemNotFoundError
from catering_kernel.logging_config import LogContext, get_logger
from catering_kernel.repositories.work_item_repository import WorkItemRepository

logger = get_logger("services.work_item")


class WorkItemService:

    def __init__(self, repository: WorkItemRepository, clock: Clock):
        self._repository = repository
        self._clock = clock

    def confirm_expected(
        self,
        work_item_id: UUID,
        quantity: int,
        party_id: UUID,
    ) -> WorkItem:
        item, agreement = self._load(work_item_id)
        agreement.ensure_active()
        agreement.ensure_consumer(party_id, "confirm the expected quantity")

        updated = item.confirm_expected(quantity, agreement.terms(), self._clock.now())
        saved = self._repository.save(updated)

        with LogContext.bind(
            work_item_id=str(work_item_id),
            agreement_id=str(agreement.agreement_id),
        ):
            logger.info("expected_quantity_confirmed", extra={"quantity": quantity})
        return saved

    def confirm_served(
        self,
        work_item_id: UUID,
        quantity: int,
        party_id: UUID,
    ) -> WorkItem:
        item, agreement = self._load(work_item_id)
        agreement.ensure_active()
        agreement.ensure_provider(party_id, "confirm the served quantity")

        updated = item.confirm_served(quantity, self._clock.now())
        saved = self._repository.save(updated)

        with LogContext.bind(
            work_item_id=str(work_item_id),
            agreement_id=str(agreement.agreement_id),
        ):
            logger.info("served_quantity_confirmed", extra={"quantity": quantity})
        return saved

    def _load(self, work_item_id: UUID) -> tuple[WorkItem, Agreement]:
        found = self._repository.find_by_id_with_agreement(work_item_id)
        if found is None:
            raise WorkItemNotFoundError(str(work_item_id))
        return found
