"""
Agreement lifecycle: transition table, entity validation and events.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from catering_kernel.domain import events
from catering_kernel.domain.agreement import (
    Agreement,
    can_transition,
    invalid_transition_reason,
    next_status,
)
from catering_kernel.domain.types import AgreementAction, AgreementStatus
from catering_kernel.exceptions import (
    AgreementNotActiveError,
    InvalidAgreementError,
    InvalidTransitionError,
    NotAuthorizedError,
)

NOW = datetime(2024, 3, 6, 12, 0, 0)
LATER = datetime(2024, 3, 7, 9, 30, 0)


# =============================================================================
# Transition table
# =============================================================================


class TestTransitionTable:

    @pytest.mark.parametrize(
        "status, action, expected",
        [
            (AgreementStatus.ACTIVE, AgreementAction.PAUSE, AgreementStatus.PAUSED),
            (AgreementStatus.ACTIVE, AgreementAction.TERMINATE, AgreementStatus.TERMINATED),
            (AgreementStatus.PAUSED, AgreementAction.RESUME, AgreementStatus.ACTIVE),
            (AgreementStatus.PAUSED, AgreementAction.TERMINATE, AgreementStatus.TERMINATED),
        ],
    )
    def test_allowed_transitions(self, status, action, expected):
        assert can_transition(status, action)
        assert next_status(status, action) == expected
        assert invalid_transition_reason(status, action) is None

    @pytest.mark.parametrize(
        "status, action, reason",
        [
            (AgreementStatus.ACTIVE, AgreementAction.RESUME, "already active"),
            (AgreementStatus.PAUSED, AgreementAction.PAUSE, "already paused"),
            (AgreementStatus.TERMINATED, AgreementAction.PAUSE, "cannot pause a terminated agreement"),
            (AgreementStatus.TERMINATED, AgreementAction.RESUME, "cannot resume a terminated agreement"),
            (
                AgreementStatus.TERMINATED,
                AgreementAction.TERMINATE,
                "cannot terminate a terminated agreement",
            ),
        ],
    )
    def test_rejected_transitions(self, status, action, reason):
        assert not can_transition(status, action)
        assert next_status(status, action) is None
        assert invalid_transition_reason(status, action) == reason

    def test_accepts_string_values(self):
        assert next_status("ACTIVE", "pause") == AgreementStatus.PAUSED

    def test_unknown_action_raises(self):
        with pytest.raises(ValueError):
            next_status("ACTIVE", "archive")


# =============================================================================
# Creation
# =============================================================================


def _terms(**overrides):
    terms = {
        "provider_id": uuid4(),
        "consumer_id": uuid4(),
        "price_per_unit": Decimal("9.90"),
        "min_daily_quantity": 10,
        "max_daily_quantity": 50,
        "notice_period_hours": 48,
        "weekdays": [1, 3, 5],
        "start_date": date(2024, 3, 1),
        "end_date": None,
        "now": NOW,
    }
    terms.update(overrides)
    return terms


class TestAgreementCreate:

    def test_new_agreement_is_active(self):
        agreement = Agreement.create(**_terms())

        assert agreement.status == AgreementStatus.ACTIVE
        assert agreement.is_active
        assert agreement.weekdays == frozenset({1, 3, 5})
        assert agreement.created_at == NOW
        assert agreement.updated_at == NOW

    def test_min_equal_to_max_is_valid(self):
        agreement = Agreement.create(**_terms(min_daily_quantity=20, max_daily_quantity=20))
        assert agreement.terms().min_daily_quantity == 20

    @pytest.mark.parametrize(
        "overrides",
        [
            {"min_daily_quantity": 60, "max_daily_quantity": 50},
            {"min_daily_quantity": -1},
            {"notice_period_hours": -1},
            {"price_per_unit": Decimal("-0.01")},
            {"weekdays": []},
            {"weekdays": [0, 1]},
            {"weekdays": [8]},
            {"start_date": date(2024, 3, 10), "end_date": date(2024, 3, 9)},
        ],
    )
    def test_invalid_terms_rejected(self, overrides):
        with pytest.raises(InvalidAgreementError):
            Agreement.create(**_terms(**overrides))

    def test_provider_and_consumer_must_differ(self):
        party = uuid4()
        with pytest.raises(InvalidAgreementError, match="must differ"):
            Agreement.create(**_terms(provider_id=party, consumer_id=party))


# =============================================================================
# Transitions on the entity
# =============================================================================


class TestAgreementTransition:

    def test_pause_returns_new_instance_and_event(self):
        agreement = Agreement.create(**_terms())

        paused, event = agreement.transition(AgreementAction.PAUSE, LATER, "corr-1")

        assert agreement.status == AgreementStatus.ACTIVE
        assert paused.status == AgreementStatus.PAUSED
        assert paused.updated_at == LATER
        assert event.event_type == events.AGREEMENT_PAUSED
        assert event.aggregate_id == agreement.agreement_id
        assert event.payload["previous_status"] == "ACTIVE"
        assert event.payload["new_status"] == "PAUSED"
        assert event.correlation_id == "corr-1"

    def test_resume_after_pause(self):
        paused, _ = Agreement.create(**_terms()).transition("pause", NOW)

        resumed, event = paused.transition("resume", LATER)

        assert resumed.status == AgreementStatus.ACTIVE
        assert event.event_type == events.AGREEMENT_RESUMED

    def test_terminate_from_paused_reports_previous_status(self):
        paused, _ = Agreement.create(**_terms()).transition("pause", NOW)

        terminated, event = paused.transition("terminate", LATER)

        assert terminated.status == AgreementStatus.TERMINATED
        assert event.event_type == events.AGREEMENT_TERMINATED
        assert event.payload["previous_status"] == "PAUSED"

    def test_terminated_is_absorbing(self):
        terminated, _ = Agreement.create(**_terms()).transition("terminate", NOW)

        for action in AgreementAction:
            with pytest.raises(InvalidTransitionError) as exc_info:
                terminated.transition(action, LATER)
            assert "terminated agreement" in exc_info.value.reason

    def test_pause_twice_rejected(self):
        paused, _ = Agreement.create(**_terms()).transition("pause", NOW)

        with pytest.raises(InvalidTransitionError, match="already paused"):
            paused.transition("pause", LATER)


# =============================================================================
# Guards
# =============================================================================


class TestAgreementGuards:

    def test_ensure_active_raises_when_paused(self):
        paused, _ = Agreement.create(**_terms()).transition("pause", NOW)

        with pytest.raises(AgreementNotActiveError) as exc_info:
            paused.ensure_active()
        assert exc_info.value.status == "PAUSED"

    def test_party_checks(self):
        agreement = Agreement.create(**_terms())

        assert agreement.is_party(agreement.provider_id)
        assert agreement.is_party(agreement.consumer_id)
        assert not agreement.is_party(uuid4())

        agreement.ensure_consumer(agreement.consumer_id, "confirm")
        agreement.ensure_provider(agreement.provider_id, "confirm")

        with pytest.raises(NotAuthorizedError):
            agreement.ensure_consumer(agreement.provider_id, "confirm")
        with pytest.raises(NotAuthorizedError):
            agreement.ensure_provider(agreement.consumer_id, "confirm")
