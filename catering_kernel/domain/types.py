"""
catering_kernel.domain.types -- Status and action enums shared by the
agreement state machine, the work item entity and the eligibility rules.

ZERO I/O.
"""

from __future__ import annotations

from enum import Enum


class AgreementStatus(str, Enum):
    """Agreement lifecycle status."""

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    TERMINATED = "TERMINATED"  # Absorbing


class AgreementAction(str, Enum):
    """Caller-supplied lifecycle action."""

    PAUSE = "pause"
    RESUME = "resume"
    TERMINATE = "terminate"


class WorkItemStatus(str, Enum):
    """Work item status.  PENDING -> CONFIRMED exactly once, never back."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"  # Served quantity confirmed by the provider


# ISO 8601 weekday numbers (Monday=1 .. Sunday=7)
ISO_WEEKDAYS: frozenset[int] = frozenset(range(1, 8))
