"""
Agreement -- lifecycle state machine and immutable agreement entity.

Transitions:
    ACTIVE  --pause-->     PAUSED
    ACTIVE  --terminate--> TERMINATED
    PAUSED  --resume-->    ACTIVE
    PAUSED  --terminate--> TERMINATED
    TERMINATED is absorbing.

Contract:
    The transition functions are pure lookups.  ``Agreement.transition``
    never mutates; it returns the next state together with the domain event
    describing the change.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from catering_kernel.domain import events
from catering_kernel.domain.events import DomainEvent
from catering_kernel.domain.rules import is_valid_quantity_range, validate_weekdays
from catering_kernel.domain.types import AgreementAction, AgreementStatus
from catering_kernel.exceptions import (
    AgreementNotActiveError,
    InvalidAgreementError,
    InvalidTransitionError,
    NotAuthorizedError,
)

# =============================================================================
# State machine
# =============================================================================

_TRANSITIONS: dict[AgreementStatus, dict[AgreementAction, AgreementStatus]] = {
    AgreementStatus.ACTIVE: {
        AgreementAction.PAUSE: AgreementStatus.PAUSED,
        AgreementAction.TERMINATE: AgreementStatus.TERMINATED,
    },
    AgreementStatus.PAUSED: {
        AgreementAction.RESUME: AgreementStatus.ACTIVE,
        AgreementAction.TERMINATE: AgreementStatus.TERMINATED,
    },
    AgreementStatus.TERMINATED: {},
}


def can_transition(
    status: AgreementStatus | str,
    action: AgreementAction | str,
) -> bool:
    return next_status(status, action) is not None


def next_status(
    status: AgreementStatus | str,
    action: AgreementAction | str,
) -> AgreementStatus | None:
    """Target status for ``action`` from ``status``, or None if not allowed."""
    return _TRANSITIONS[AgreementStatus(status)].get(AgreementAction(action))


def invalid_transition_reason(
    status: AgreementStatus | str,
    action: AgreementAction | str,
) -> str | None:
    """Human-readable reason the transition is rejected, None if allowed."""
    status = AgreementStatus(status)
    action = AgreementAction(action)
    if action in _TRANSITIONS[status]:
        return None
    if status == AgreementStatus.TERMINATED:
        return f"cannot {action.value} a terminated agreement"
    if status == AgreementStatus.PAUSED and action == AgreementAction.PAUSE:
        return "already paused"
    if status == AgreementStatus.ACTIVE and action == AgreementAction.RESUME:
        return "already active"
    return f"cannot {action.value} agreement with status {status.value}"


# =============================================================================
# Entity
# =============================================================================


@dataclass(frozen=True)
class AgreementTerms:
    """Agreement values a work item operation needs, read at operation time."""

    min_daily_quantity: int
    max_daily_quantity: int
    notice_period_hours: int


@dataclass(frozen=True)
class Agreement:
    agreement_id: UUID
    provider_id: UUID
    consumer_id: UUID
    price_per_unit: Decimal
    min_daily_quantity: int
    max_daily_quantity: int
    notice_period_hours: int
    weekdays: frozenset[int]
    status: AgreementStatus
    start_date: date
    end_date: date | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def create(
        cls,
        *,
        provider_id: UUID,
        consumer_id: UUID,
        price_per_unit: Decimal,
        min_daily_quantity: int,
        max_daily_quantity: int,
        notice_period_hours: int,
        weekdays: Iterable[int],
        start_date: date,
        end_date: date | None,
        now: datetime,
        agreement_id: UUID | None = None,
    ) -> Agreement:
        """Validate terms and build a new ACTIVE agreement.

        Raises:
            InvalidAgreementError: If any term is out of range.
        """
        if not is_valid_quantity_range(min_daily_quantity, max_daily_quantity):
            raise InvalidAgreementError(
                f"min_daily_quantity ({min_daily_quantity}) must be >= 0 and "
                f"<= max_daily_quantity ({max_daily_quantity})"
            )
        if notice_period_hours < 0:
            raise InvalidAgreementError(
                f"notice_period_hours must be >= 0, got {notice_period_hours}"
            )
        if Decimal(price_per_unit) < 0:
            raise InvalidAgreementError(
                f"price_per_unit must be >= 0, got {price_per_unit}"
            )
        try:
            days = validate_weekdays(weekdays)
        except ValueError as exc:
            raise InvalidAgreementError(str(exc)) from exc
        if not days:
            raise InvalidAgreementError("weekdays must not be empty")
        if end_date is not None and end_date < start_date:
            raise InvalidAgreementError(
                f"end_date {end_date} is before start_date {start_date}"
            )
        if provider_id == consumer_id:
            raise InvalidAgreementError("provider and consumer must differ")

        return cls(
            agreement_id=agreement_id or uuid4(),
            provider_id=provider_id,
            consumer_id=consumer_id,
            price_per_unit=Decimal(price_per_unit),
            min_daily_quantity=min_daily_quantity,
            max_daily_quantity=max_daily_quantity,
            notice_period_hours=notice_period_hours,
            weekdays=days,
            status=AgreementStatus.ACTIVE,
            start_date=start_date,
            end_date=end_date,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_active(self) -> bool:
        return self.status == AgreementStatus.ACTIVE

    def terms(self) -> AgreementTerms:
        return AgreementTerms(
            min_daily_quantity=self.min_daily_quantity,
            max_daily_quantity=self.max_daily_quantity,
            notice_period_hours=self.notice_period_hours,
        )

    def transition(
        self,
        action: AgreementAction | str,
        now: datetime,
        correlation_id: str | None = None,
    ) -> tuple[Agreement, DomainEvent]:
        """Apply a lifecycle action.

        Returns:
            The agreement in its new status and the event for the change.

        Raises:
            InvalidTransitionError: If the action is not allowed.
        """
        action = AgreementAction(action)
        target = next_status(self.status, action)
        if target is None:
            raise InvalidTransitionError(
                self.status.value,
                action.value,
                invalid_transition_reason(self.status, action),
            )

        updated = replace(self, status=target, updated_at=now)
        if action == AgreementAction.PAUSE:
            event = events.agreement_paused(self.agreement_id, now, correlation_id)
        elif action == AgreementAction.RESUME:
            event = events.agreement_resumed(self.agreement_id, now, correlation_id)
        else:
            event = events.agreement_terminated(
                updated, self.status.value, now, correlation_id
            )
        return updated, event

    def ensure_active(self) -> None:
        if self.status != AgreementStatus.ACTIVE:
            raise AgreementNotActiveError(str(self.agreement_id), self.status.value)

    def is_party(self, party_id: UUID) -> bool:
        return party_id in (self.provider_id, self.consumer_id)

    def ensure_consumer(self, party_id: UUID, operation: str) -> None:
        if party_id != self.consumer_id:
            raise NotAuthorizedError(str(party_id), operation)

    def ensure_provider(self, party_id: UUID, operation: str) -> None:
        if party_id != self.provider_id:
            raise NotAuthorizedError(str(party_id), operation)
