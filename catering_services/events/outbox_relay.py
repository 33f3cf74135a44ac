"""
OutboxRelay -- publish stored domain events to the event bus.

Responsibility:
    Claims PENDING outbox rows whose ``next_attempt_at`` has passed,
    publishes each to the bus and records the outcome.

Status lifecycle:
    PENDING -> PROCESSING -> PROCESSED
    PROCESSING -> PENDING with ``next_attempt_at = now + 1s * 2**(retry_count - 1)``
    -> ... -> DEAD once ``retry_count`` reaches ``max_retries``.

Failure modes:
    - Each subscriber runs in its own savepoint.  A failing handler rolls
      back only its own writes; ledger rows recorded by the handlers that
      succeeded survive, so a retry re-runs only the failed side effects.
      Any failure schedules a retry of the whole event.
    - A relay that crashes mid-batch leaves rows PROCESSING;
      ``recover_stale()`` returns them to PENDING after a timeout.

Non-goals:
    - Does NOT commit; the caller owns the transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from catering_kernel.domain.clock import Clock
from catering_kernel.domain.events import DomainEvent
from catering_kernel.logging_config import LogContext, get_logger
from catering_kernel.models.outbox import OutboxEventModel, OutboxStatus
from catering_kernel.services.named_lock import default_holder

from catering_services.events.bus import InMemoryEventBus

logger = get_logger("services.outbox_relay")

DEFAULT_BATCH_SIZE = 100
DEFAULT_STALE_AFTER_SECONDS = 60
BASE_BACKOFF = timedelta(seconds=1)


@dataclass(frozen=True)
class RelayRunResult:
    claimed: int = 0
    published: int = 0
    retried: int = 0
    dead: int = 0

    def counts(self) -> dict[str, int]:
        return {
            "claimed": self.claimed,
            "published": self.published,
            "retried": self.retried,
            "dead": self.dead,
        }


def backoff_delay(attempt: int) -> timedelta:
    """Delay before retry number ``attempt`` (1-based): 1s, 2s, 4s, ..."""
    return BASE_BACKOFF * (2 ** max(attempt - 1, 0))


class OutboxRelay:

    def __init__(
        self,
        session: Session,
        bus: InMemoryEventBus,
        clock: Clock,
        worker_id: str | None = None,
    ):
        self._session = session
        self._bus = bus
        self._clock = clock
        self._worker_id = worker_id or default_holder()

    def process_pending(self, batch_size: int = DEFAULT_BATCH_SIZE) -> RelayRunResult:
        now = self._clock.now()
        rows = self._session.execute(
            select(OutboxEventModel)
            .where(
                OutboxEventModel.status == OutboxStatus.PENDING.value,
                OutboxEventModel.next_attempt_at <= now,
            )
            .order_by(OutboxEventModel.occurred_at, OutboxEventModel.id)
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        ).scalars().all()

        for row in rows:
            row.status = OutboxStatus.PROCESSING.value
            row.locked_at = now
            row.locked_by = self._worker_id
        self._session.flush()

        published = retried = dead = 0
        for row in rows:
            if self._publish(row):
                published += 1
            elif row.status == OutboxStatus.DEAD.value:
                dead += 1
            else:
                retried += 1
        self._session.flush()

        result = RelayRunResult(
            claimed=len(rows), published=published, retried=retried, dead=dead,
        )
        if rows:
            logger.info(
                "outbox_batch_processed",
                extra={
                    "claimed": result.claimed,
                    "published": result.published,
                    "retried": result.retried,
                    "dead": result.dead,
                },
            )
        return result

    def recover_stale(
        self,
        stale_after_seconds: int = DEFAULT_STALE_AFTER_SECONDS,
    ) -> int:
        """Return rows stuck in PROCESSING longer than the timeout to PENDING."""
        cutoff = self._clock.now() - timedelta(seconds=stale_after_seconds)
        recovered = self._session.execute(
            update(OutboxEventModel)
            .where(
                OutboxEventModel.status == OutboxStatus.PROCESSING.value,
                OutboxEventModel.locked_at < cutoff,
            )
            .values(
                status=OutboxStatus.PENDING.value,
                locked_at=None,
                locked_by=None,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        if recovered:
            logger.warning("outbox_stale_recovered", extra={"recovered": recovered})
        return recovered

    def stats(self) -> dict[str, int]:
        rows = self._session.execute(
            select(OutboxEventModel.status, func.count())
            .group_by(OutboxEventModel.status)
        ).all()
        counts = {status.value: 0 for status in OutboxStatus}
        for status, count in rows:
            counts[status] = count
        return counts

    def _publish(self, row: OutboxEventModel) -> bool:
        event = row.to_event()
        with LogContext.bind(
            event_id=str(event.event_id),
            correlation_id=event.correlation_id,
        ):
            failure = self._deliver(event)
            if failure is not None:
                self._record_failure(row, failure)
                return False

            row.status = OutboxStatus.PROCESSED.value
            row.processed_at = self._clock.now()
            row.locked_at = None
            row.locked_by = None
            logger.debug("outbox_event_published", extra={"event_type": event.event_type})
            return True

    def _deliver(self, event: DomainEvent) -> Exception | None:
        """Run each handler in its own savepoint; return the first failure."""
        first_failure: Exception | None = None
        for handler in self._bus.handlers_for(event.event_type):
            try:
                with self._session.begin_nested():
                    handler(event)
            except Exception as exc:
                logger.warning(
                    "outbox_handler_failed",
                    exc_info=exc,
                    extra={
                        "event_type": event.event_type,
                        "handler": getattr(handler, "__qualname__", repr(handler)),
                    },
                )
                if first_failure is None:
                    first_failure = exc
        return first_failure

    def _record_failure(self, row: OutboxEventModel, exc: Exception) -> None:
        now = self._clock.now()
        row.retry_count += 1
        row.last_error = f"{type(exc).__name__}: {exc}"
        row.locked_at = None
        row.locked_by = None

        if row.retry_count >= row.max_retries:
            row.status = OutboxStatus.DEAD.value
            logger.error(
                "outbox_event_dead",
                exc_info=exc,
                extra={"event_type": row.event_type, "retry_count": row.retry_count},
            )
            return

        row.status = OutboxStatus.PENDING.value
        row.next_attempt_at = now + backoff_delay(row.retry_count)
        logger.warning(
            "outbox_event_retry_scheduled",
            exc_info=exc,
            extra={
                "event_type": row.event_type,
                "retry_count": row.retry_count,
                "next_attempt_at": row.next_attempt_at,
            },
        )
