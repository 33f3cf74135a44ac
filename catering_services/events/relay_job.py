"""
OutboxRelayJob -- scheduled delivery of outbox events.

Each run recovers stale PROCESSING rows, then publishes one batch through a
fresh bus wired with the agreement handlers and an idempotency ledger bound
to the run's session.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.orm import Session

from catering_kernel.db.engine import session_scope
from catering_kernel.domain.clock import Clock
from catering_kernel.services.idempotency_service import IdempotencyLedger
from catering_kernel.services.named_lock import NamedLock

from catering_batch.domain.types import RELAY_OUTBOX
from catering_batch.services.jobs import LockedJob
from catering_services.events.bus import InMemoryEventBus
from catering_services.events.handlers import AgreementEventHandlers
from catering_services.events.outbox_relay import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_STALE_AFTER_SECONDS,
    OutboxRelay,
    RelayRunResult,
)
from catering_services.ports import AnalyticsPort, NotificationPort


class OutboxRelayJob(LockedJob[RelayRunResult]):

    name = RELAY_OUTBOX

    def __init__(
        self,
        session_factory: Callable[[], Session],
        lock: NamedLock,
        clock: Clock,
        notifications: NotificationPort,
        analytics: AnalyticsPort,
        batch_size: int = DEFAULT_BATCH_SIZE,
        stale_after_seconds: int = DEFAULT_STALE_AFTER_SECONDS,
        lock_name: str | None = None,
    ):
        super().__init__(session_factory, lock, clock, lock_name)
        self._notifications = notifications
        self._analytics = analytics
        self._batch_size = batch_size
        self._stale_after_seconds = stale_after_seconds

    def _body(self) -> RelayRunResult:
        with session_scope(self._session_factory) as session:
            bus = InMemoryEventBus()
            AgreementEventHandlers(
                bus,
                IdempotencyLedger(session, self._clock),
                self._notifications,
                self._analytics,
            )
            relay = OutboxRelay(session, bus, self._clock)
            relay.recover_stale(self._stale_after_seconds)
            return relay.process_pending(self._batch_size)
