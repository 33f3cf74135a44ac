"""
AgreementService -- agreement lifecycle with transactional outbox events.

Contract:
    ``create`` / ``pause`` / ``resume`` / ``terminate`` persist the new
    agreement state and append the matching domain event to the outbox in
    the caller's session.  Both land or neither does.

Non-goals:
    - Does NOT commit; the caller owns the transaction.
    - Does NOT publish; ``OutboxRelay`` does that afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from catering_kernel.domain import events
from catering_kernel.domain.agreement import Agreement
from catering_kernel.domain.clock import Clock
from catering_kernel.domain.events import DomainEvent
from catering_kernel.domain.types import AgreementAction
from catering_kernel.exceptions import AgreementNotFoundError, DuplicateAgreementError
from catering_kernel.logging_config import LogContext, get_logger
from catering_kernel.models.outbox import DEFAULT_MAX_RETRIES, OutboxEventModel
from catering_kernel.repositories.agreement_repository import AgreementRepository

logger = get_logger("services.agreement")


class AgreementService:

    def __init__(
        self,
        session: Session,
        clock: Clock,
        outbox_max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        self._session = session
        self._clock = clock
        self._repository = AgreementRepository(session)
        self._outbox_max_retries = outbox_max_retries

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def get(self, agreement_id: UUID) -> Agreement:
        agreement = self._repository.get(agreement_id)
        if agreement is None:
            raise AgreementNotFoundError(str(agreement_id))
        return agreement

    def list_active(self) -> list[Agreement]:
        return self._repository.find_active()

    # -----------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------

    def create(
        self,
        *,
        provider_id: UUID,
        consumer_id: UUID,
        price_per_unit: Decimal,
        min_daily_quantity: int,
        max_daily_quantity: int,
        notice_period_hours: int,
        weekdays: Iterable[int],
        start_date: date,
        end_date: date | None = None,
        correlation_id: str | None = None,
    ) -> Agreement:
        """
        Raises:
            DuplicateAgreementError: An ACTIVE agreement already links the
                same provider and consumer.
            InvalidAgreementError: Terms failed validation.
        """
        existing = self._repository.find_active_between(provider_id, consumer_id)
        if existing is not None:
            raise DuplicateAgreementError(
                str(provider_id), str(consumer_id), str(existing.agreement_id)
            )

        agreement = Agreement.create(
            provider_id=provider_id,
            consumer_id=consumer_id,
            price_per_unit=price_per_unit,
            min_daily_quantity=min_daily_quantity,
            max_daily_quantity=max_daily_quantity,
            notice_period_hours=notice_period_hours,
            weekdays=weekdays,
            start_date=start_date,
            end_date=end_date,
            now=self._clock.now(),
        )
        self._repository.add(agreement)
        self._append_to_outbox(events.agreement_created(agreement, correlation_id))

        with LogContext.bind(agreement_id=str(agreement.agreement_id)):
            logger.info(
                "agreement_created",
                extra={
                    "provider_id": str(provider_id),
                    "consumer_id": str(consumer_id),
                },
            )
        return agreement

    def pause(self, agreement_id: UUID, correlation_id: str | None = None) -> Agreement:
        return self._transition(agreement_id, AgreementAction.PAUSE, correlation_id)

    def resume(self, agreement_id: UUID, correlation_id: str | None = None) -> Agreement:
        return self._transition(agreement_id, AgreementAction.RESUME, correlation_id)

    def terminate(
        self, agreement_id: UUID, correlation_id: str | None = None,
    ) -> Agreement:
        return self._transition(agreement_id, AgreementAction.TERMINATE, correlation_id)

    # -----------------------------------------------------------------
    # Internal
    # -----------------------------------------------------------------

    def _transition(
        self,
        agreement_id: UUID,
        action: AgreementAction,
        correlation_id: str | None,
    ) -> Agreement:
        current = self.get(agreement_id)
        updated, event = current.transition(action, self._clock.now(), correlation_id)
        self._repository.update(updated)
        self._append_to_outbox(event)

        with LogContext.bind(agreement_id=str(agreement_id)):
            logger.info(
                "agreement_status_changed",
                extra={
                    "action": action.value,
                    "previous_status": current.status.value,
                    "new_status": updated.status.value,
                },
            )
        return updated

    def _append_to_outbox(self, event: DomainEvent) -> None:
        self._session.add(
            OutboxEventModel.from_event(event, max_retries=self._outbox_max_retries)
        )
        self._session.flush()
