"""
Scheduled jobs: work item generation and fallback application.

Contract:
    ``run()`` executes the job body inside ``NamedLock.with_lock`` and
    returns one ``JobRunMetrics`` record, which is also emitted as a
    ``job_run_metrics`` log line.

Guarantees:
    - Lock miss: no session is opened, ``lock_acquired=False`` is reported
      and ``job_skipped_lock_held`` is logged.
    - The lock is released on every exit path; an exception from the body
      propagates after release.
    - Each run uses its own session and commits once at the end.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import timedelta
from typing import Generic, TypeVar
from uuid import uuid4

from sqlalchemy.orm import Session

from catering_kernel.db.engine import session_scope
from catering_kernel.domain.clock import Clock
from catering_kernel.logging_config import LogContext, get_logger
from catering_kernel.repositories.agreement_repository import AgreementRepository
from catering_kernel.repositories.work_item_repository import (
    SqlAlchemyWorkItemRepository,
)
from catering_kernel.services.named_lock import NamedLock

from catering_batch.domain.types import (
    APPLY_FALLBACK,
    GENERATE_WORK_ITEMS,
    FallbackRunResult,
    GenerationError,
    GenerationRunResult,
    JobRunMetrics,
)
from catering_batch.metrics import emit_job_metrics
from catering_batch.services.fallback import ApplyFallbackUseCase
from catering_batch.services.generation import WorkItemGenerator

logger = get_logger("batch.jobs")

R = TypeVar("R")

DEFAULT_HORIZON_DAYS = 7


class LockedJob(Generic[R]):
    """Lock, run, measure, emit.

    Subclasses provide ``_body``; its result must offer ``counts()``.
    """

    name: str = ""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        lock: NamedLock,
        clock: Clock,
        lock_name: str | None = None,
    ):
        self._session_factory = session_factory
        self._lock = lock
        self._clock = clock
        self.lock_name = lock_name or self.name

    def run(self) -> JobRunMetrics:
        run_id = str(uuid4())
        with LogContext.bind(job_name=self.name, run_id=run_id):
            started = time.monotonic()
            logger.info("job_started", extra={"lock_name": self.lock_name})

            outcome = self._lock.with_lock(self.lock_name, self._body)
            duration_ms = (time.monotonic() - started) * 1000

            if not outcome.acquired:
                logger.info(
                    "job_skipped_lock_held",
                    extra={"lock_name": self.lock_name},
                )
                return emit_job_metrics(
                    JobRunMetrics(
                        job=self.name,
                        lock_acquired=False,
                        duration_ms=duration_ms,
                    )
                )

            return emit_job_metrics(self._metrics(outcome.result, duration_ms))

    def _body(self) -> R:
        raise NotImplementedError

    def _metrics(self, result: R, duration_ms: float) -> JobRunMetrics:
        return JobRunMetrics(
            job=self.name,
            lock_acquired=True,
            duration_ms=duration_ms,
            counts=result.counts(),
        )


class GenerateWorkItemsJob(LockedJob[GenerationRunResult]):
    """
    Generate work items for every ACTIVE agreement over
    ``[today, today + horizon_days]`` (UTC).

    A failing agreement is rolled back to its savepoint, logged and counted;
    the job continues with the next one.
    """

    name = GENERATE_WORK_ITEMS

    def __init__(
        self,
        session_factory: Callable[[], Session],
        lock: NamedLock,
        clock: Clock,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
        lock_name: str | None = None,
    ):
        super().__init__(session_factory, lock, clock, lock_name)
        self._horizon_days = horizon_days

    def _body(self) -> GenerationRunResult:
        date_from = self._clock.today()
        date_to = date_from + timedelta(days=self._horizon_days)

        inserted = 0
        errors: list[GenerationError] = []

        with session_scope(self._session_factory) as session:
            agreements = AgreementRepository(session).find_active()
            generator = WorkItemGenerator(
                SqlAlchemyWorkItemRepository(session), self._clock
            )

            for agreement in agreements:
                with LogContext.bind(agreement_id=str(agreement.agreement_id)):
                    try:
                        with session.begin_nested():
                            created = generator.generate_for_agreement(
                                agreement, date_from, date_to
                            )
                    except Exception as exc:
                        errors.append(GenerationError(agreement.agreement_id, str(exc)))
                        logger.exception("generation_agreement_failed")
                        continue
                    inserted += len(created)

        return GenerationRunResult(
            date_from=date_from,
            date_to=date_to,
            active_agreements=len(agreements),
            work_items_inserted=inserted,
            errors=tuple(errors),
        )

    def _metrics(self, result: GenerationRunResult, duration_ms: float) -> JobRunMetrics:
        return JobRunMetrics(
            job=self.name,
            lock_acquired=True,
            duration_ms=duration_ms,
            counts=result.counts(),
            date_from=result.date_from,
            date_to=result.date_to,
        )


class ApplyFallbackJob(LockedJob[FallbackRunResult]):
    """Run the fallback batch once."""

    name = APPLY_FALLBACK

    def _body(self) -> FallbackRunResult:
        with session_scope(self._session_factory) as session:
            use_case = ApplyFallbackUseCase(
                SqlAlchemyWorkItemRepository(session), self._clock
            )
            return use_case.execute()
