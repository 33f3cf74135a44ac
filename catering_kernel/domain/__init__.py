"""
Pure domain layer: clock, status types, date and eligibility rules, the
agreement state machine, the work item entity and domain events.

ZERO I/O.  Nothing in this package imports SQLAlchemy or reads the clock
except through an injected ``Clock``.
"""

from catering_kernel.domain.agreement import (
    Agreement,
    AgreementTerms,
    can_transition,
    invalid_transition_reason,
    next_status,
)
from catering_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from catering_kernel.domain.events import DomainEvent
from catering_kernel.domain.types import (
    AgreementAction,
    AgreementStatus,
    WorkItemStatus,
)
from catering_kernel.domain.work_item import WorkItem

__all__ = [
    "Agreement",
    "AgreementAction",
    "AgreementStatus",
    "AgreementTerms",
    "Clock",
    "DeterministicClock",
    "DomainEvent",
    "SystemClock",
    "WorkItem",
    "WorkItemStatus",
    "can_transition",
    "invalid_transition_reason",
    "next_status",
]
