"""
ApplyFallbackUseCase -- default the expected quantity of overdue work items.

Contract:
    For every (work item, agreement) pair the repository reports as eligible,
    in the order returned, apply the agreement's minimum daily quantity.

Guarantees:
    - Strictly sequential; no reordering.
    - A pair whose item no longer needs fallback at mutation time is counted
      as skipped and not saved.
    - A pair confirmed by the consumer between selection and save is
      rejected by the repository and also counted as skipped.
    - A save failure is recorded with the item id and the error message and
      the batch continues with the next item.
"""

from __future__ import annotations

from catering_kernel.domain.clock import Clock
from catering_kernel.exceptions import AlreadyConfirmedError, ExpectedAlreadySetError
from catering_kernel.logging_config import LogContext, get_logger
from catering_kernel.repositories.work_item_repository import WorkItemRepository

from catering_batch.domain.types import (
    FallbackApplied,
    FallbackItemError,
    FallbackRunResult,
)

logger = get_logger("batch.fallback")


class ApplyFallbackUseCase:

    def __init__(self, repository: WorkItemRepository, clock: Clock):
        self._repository = repository
        self._clock = clock

    def execute(self) -> FallbackRunResult:
        now = self._clock.now()
        candidates = self._repository.find_eligible_for_fallback(now)

        processed = 0
        skipped = 0
        applied: list[FallbackApplied] = []
        errors: list[FallbackItemError] = []

        for work_item, agreement in candidates:
            processed += 1
            with LogContext.bind(
                work_item_id=str(work_item.work_item_id),
                agreement_id=str(agreement.agreement_id),
            ):
                updated = work_item.apply_fallback(agreement.min_daily_quantity, now)
                if updated is None:
                    skipped += 1
                    logger.debug("fallback_skipped")
                    continue

                try:
                    self._repository.save(updated)
                except (AlreadyConfirmedError, ExpectedAlreadySetError):
                    skipped += 1
                    logger.info("fallback_skipped_confirmed_concurrently")
                    continue
                except Exception as exc:
                    errors.append(FallbackItemError(work_item.work_item_id, str(exc)))
                    logger.exception("fallback_item_failed")
                    continue

                applied.append(
                    FallbackApplied(
                        work_item_id=work_item.work_item_id,
                        agreement_id=agreement.agreement_id,
                        service_date=work_item.service_date,
                        applied_quantity=agreement.min_daily_quantity,
                    )
                )
                logger.info(
                    "fallback_applied",
                    extra={
                        "service_date": work_item.service_date.isoformat(),
                        "applied_quantity": agreement.min_daily_quantity,
                    },
                )

        return FallbackRunResult(
            processed_count=processed,
            applied_count=len(applied),
            skipped_count=skipped,
            applied=tuple(applied),
            errors=tuple(errors),
        )
