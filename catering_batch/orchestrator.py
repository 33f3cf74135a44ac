"""
SchedulerOrchestrator -- composition root for the scheduler process.

Contract:
    Wires the clock, the named lock, the three scheduled jobs and the frozen
    JobRegistry from ``Settings``.  Single place where batch dependencies are
    composed; jobs and services only ever receive their collaborators.

Non-goals:
    - Does NOT start the scheduler automatically; the caller decides.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from catering_config import Settings
from catering_kernel.db.engine import get_session_factory, init_engine_from_url
from catering_kernel.domain.clock import Clock, SystemClock
from catering_kernel.logging_config import get_logger
from catering_kernel.services.named_lock import LeaseLock, NamedLock, PostgresAdvisoryLock

from catering_batch.domain.types import JobRunMetrics
from catering_batch.registry import JobDefinition, JobRegistry
from catering_batch.services.jobs import ApplyFallbackJob, GenerateWorkItemsJob
from catering_batch.services.scheduler import JobScheduler
from catering_services.events.relay_job import OutboxRelayJob
from catering_services.ports import (
    AnalyticsPort,
    LoggingAnalyticsAdapter,
    LoggingNotificationAdapter,
    NotificationPort,
)

logger = get_logger("batch.orchestrator")


def build_lock(
    settings: Settings,
    engine: Engine,
    session_factory: Callable[[], Session],
    clock: Clock,
) -> NamedLock:
    if settings.lock_backend == "advisory":
        return PostgresAdvisoryLock(engine)
    return LeaseLock(session_factory, clock, ttl_seconds=settings.lock_ttl_seconds)


class SchedulerOrchestrator:

    def __init__(
        self,
        settings: Settings,
        session_factory: Callable[[], Session],
        lock: NamedLock,
        clock: Clock | None = None,
        notifications: NotificationPort | None = None,
        analytics: AnalyticsPort | None = None,
    ):
        self._settings = settings
        self._clock = clock or SystemClock()

        self.generation_job = GenerateWorkItemsJob(
            session_factory,
            lock,
            self._clock,
            horizon_days=settings.generation_horizon_days,
        )
        self.fallback_job = ApplyFallbackJob(session_factory, lock, self._clock)
        self.relay_job = OutboxRelayJob(
            session_factory,
            lock,
            self._clock,
            notifications or LoggingNotificationAdapter(),
            analytics or LoggingAnalyticsAdapter(),
            batch_size=settings.outbox_batch_size,
            stale_after_seconds=settings.outbox_stale_after_seconds,
        )
        self.registry = self._build_registry()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        clock: Clock | None = None,
    ) -> SchedulerOrchestrator:
        """Initialize the engine from ``settings`` and wire everything."""
        effective_clock = clock or SystemClock()
        engine = init_engine_from_url(
            settings.database_url,
            echo=settings.echo_sql,
            pool_size=settings.pool_size,
        )
        session_factory = get_session_factory()
        lock = build_lock(settings, engine, session_factory, effective_clock)
        logger.info(
            "orchestrator_wired",
            extra={"lock_backend": settings.lock_backend},
        )
        return cls(settings, session_factory, lock, effective_clock)

    def _build_registry(self) -> JobRegistry:
        registry = JobRegistry()
        registry.register(
            JobDefinition(
                name=self.generation_job.name,
                trigger=self._settings.generation_cron,
                lock_name=self.generation_job.lock_name,
                handler=self.generation_job.run,
                run_on_startup=self._settings.run_generation_on_startup,
            )
        )
        registry.register(
            JobDefinition(
                name=self.fallback_job.name,
                trigger=self._settings.fallback_cron,
                lock_name=self.fallback_job.lock_name,
                handler=self.fallback_job.run,
            )
        )
        registry.register(
            JobDefinition(
                name=self.relay_job.name,
                trigger=self._settings.outbox_cron,
                lock_name=self.relay_job.lock_name,
                handler=self.relay_job.run,
            )
        )
        return registry.freeze()

    def run_job(self, name: str) -> JobRunMetrics:
        """Run one registered job now, outside its trigger."""
        return self.registry.get(name).handler()

    def create_scheduler(self) -> JobScheduler:
        return JobScheduler(
            self.registry,
            clock=self._clock,
            tick_interval_seconds=self._settings.tick_interval_seconds,
        )
