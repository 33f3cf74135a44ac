"""
IdempotencyLedger -- at-most-once bookkeeping for side effects.

Responsibility:
    Records that an operation completed for a subject, keyed by
    ``(subject_id, operation_name)``, so a redelivered domain event does not
    repeat its notification or analytics side effect.

Architecture position:
    Kernel > Services.  Used by event handlers; independent of the
    scheduler's named lock.

Invariants enforced:
    - UNIQUE(subject_id, operation_name) on ``processed_operations``.  The
      insert is the single atomic "insert if absent" step; a unique
      violation means another delivery already recorded the operation.

Failure modes:
    - If ``action`` raises, nothing is recorded and the exception propagates,
      so a later delivery retries the side effect.
    - Two concurrent deliveries may both run ``action``; only one row is
      written.  This ledger deduplicates bookkeeping, it does not serialize
      execution.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from catering_kernel.domain.clock import Clock
from catering_kernel.logging_config import get_logger
from catering_kernel.models.processed_operation import ProcessedOperationModel

logger = get_logger("services.idempotency")

T = TypeVar("T")


@dataclass(frozen=True)
class ProcessOnceResult(Generic[T]):
    executed: bool
    result: T | None = None


class IdempotencyLedger:
    """
    Ledger of completed (subject, operation) pairs.

    Contract:
        ``process_once`` runs ``action`` only if the pair is not yet
        recorded, and records it only after ``action`` returns.

    Non-goals:
        - Does NOT call ``session.commit()``; the caller owns the
          transaction.
        - Does NOT lock; see module docstring.
    """

    def __init__(self, session: Session, clock: Clock):
        self._session = session
        self._clock = clock

    def is_processed(self, subject_id: str, operation_name: str) -> bool:
        row = self._session.execute(
            select(ProcessedOperationModel.id).where(
                ProcessedOperationModel.subject_id == str(subject_id),
                ProcessedOperationModel.operation_name == operation_name,
            )
        ).first()
        return row is not None

    def mark_processed(
        self,
        subject_id: str,
        operation_name: str,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """
        Record the pair.

        Returns:
            True if this call wrote the row, False if it already existed.
        """
        savepoint = self._session.begin_nested()
        try:
            self._session.add(
                ProcessedOperationModel(
                    subject_id=str(subject_id),
                    operation_name=operation_name,
                    processed_at=self._clock.now(),
                    details=metadata,
                )
            )
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "operation_already_recorded",
                extra={"subject_id": str(subject_id), "operation": operation_name},
            )
            return False
        return True

    def process_once(
        self,
        subject_id: str,
        operation_name: str,
        action: Callable[[], T],
        metadata: dict[str, Any] | None = None,
    ) -> ProcessOnceResult[T]:
        if self.is_processed(subject_id, operation_name):
            logger.info(
                "operation_skipped_already_processed",
                extra={"subject_id": str(subject_id), "operation": operation_name},
            )
            return ProcessOnceResult(executed=False)

        result = action()
        self.mark_processed(subject_id, operation_name, metadata)
        logger.info(
            "operation_processed",
            extra={"subject_id": str(subject_id), "operation": operation_name},
        )
        return ProcessOnceResult(executed=True, result=result)
