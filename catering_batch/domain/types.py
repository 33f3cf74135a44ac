"""
catering_batch.domain.types -- Frozen result records for the batch jobs.

ZERO I/O.  Results are ephemeral: they exist to produce one run's metrics
and log lines and are never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any
from uuid import UUID


# =============================================================================
# Job names
# =============================================================================

GENERATE_WORK_ITEMS = "generate_work_items"
APPLY_FALLBACK = "apply_fallback"
RELAY_OUTBOX = "relay_outbox"


# =============================================================================
# Fallback batch
# =============================================================================


@dataclass(frozen=True)
class FallbackApplied:
    """One work item that received the agreement minimum as expected quantity."""

    work_item_id: UUID
    agreement_id: UUID
    service_date: date
    applied_quantity: int


@dataclass(frozen=True)
class FallbackItemError:
    work_item_id: UUID
    message: str


@dataclass(frozen=True)
class FallbackRunResult:
    """Outcome of one fallback batch run.

    ``processed_count == applied_count + skipped_count + error_count``.
    """

    processed_count: int = 0
    applied_count: int = 0
    skipped_count: int = 0
    applied: tuple[FallbackApplied, ...] = ()
    errors: tuple[FallbackItemError, ...] = ()

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def counts(self) -> dict[str, int]:
        return {
            "processed": self.processed_count,
            "applied": self.applied_count,
            "skipped": self.skipped_count,
            "errors": self.error_count,
        }


# =============================================================================
# Generation
# =============================================================================


@dataclass(frozen=True)
class GenerationError:
    agreement_id: UUID
    message: str


@dataclass(frozen=True)
class GenerationRunResult:
    """Outcome of one generation run over every ACTIVE agreement."""

    date_from: date
    date_to: date
    active_agreements: int = 0
    work_items_inserted: int = 0
    errors: tuple[GenerationError, ...] = ()

    @property
    def agreements_with_errors(self) -> int:
        return len(self.errors)

    def counts(self) -> dict[str, int]:
        return {
            "active_agreements": self.active_agreements,
            "work_items_inserted": self.work_items_inserted,
            "agreements_with_errors": self.agreements_with_errors,
        }


# =============================================================================
# Run metrics
# =============================================================================


@dataclass(frozen=True)
class JobRunMetrics:
    """One structured record per scheduler run.

    ``lock_acquired=False`` means another instance held the job lock and no
    domain state was touched; ``counts`` is empty in that case.
    """

    job: str
    lock_acquired: bool
    duration_ms: float
    counts: dict[str, int] = field(default_factory=dict)
    date_from: date | None = None
    date_to: date | None = None

    def as_log_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "job": self.job,
            "lock_acquired": self.lock_acquired,
            "duration_ms": round(self.duration_ms, 3),
        }
        fields.update(self.counts)
        if self.date_from is not None:
            fields["date_range_start"] = self.date_from.isoformat()
        if self.date_to is not None:
            fields["date_range_end"] = self.date_to.isoformat()
        return fields
