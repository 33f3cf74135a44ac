"""
JobScheduler -- in-process polling scheduler over a frozen JobRegistry.

Contract:
    Each instance polls on its own interval.  ``tick()`` fires every job
    whose next cron time has been reached, in registry order, then moves
    that job's next run time forward.  Cross-instance exclusion is the job's
    own named lock; the scheduler itself does not coordinate instances.

Guarantees:
    - All timestamps come from the injected Clock.
    - A job exception is logged and never escapes ``tick()`` or the loop.
    - ``stop()`` sets the stop signal and waits for the current tick.

Non-goals:
    - No job-level timeout; a stuck job is bounded by datastore timeouts.
    - No catch-up of missed triggers; one overdue trigger fires once.
"""

from __future__ import annotations

import threading
from datetime import datetime

from catering_kernel.domain.clock import Clock, SystemClock
from catering_kernel.exceptions import RegistryFrozenError
from catering_kernel.logging_config import get_logger

from catering_batch.domain.schedule import compute_next_run, should_fire
from catering_batch.registry import JobDefinition, JobRegistry

logger = get_logger("batch.scheduler")


class JobScheduler:

    def __init__(
        self,
        registry: JobRegistry,
        clock: Clock | None = None,
        tick_interval_seconds: float = 60,
    ):
        if not registry.is_frozen:
            raise RegistryFrozenError("<scheduler>")
        self._registry = registry
        self._clock = clock or SystemClock()
        self._tick_interval = tick_interval_seconds
        self._next_run: dict[str, datetime] = {}
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> int:
        """Fire due jobs (public for testing).  Returns how many fired."""
        now = self._clock.now()
        fired = 0

        for definition in self._registry:
            if self._stop_event.is_set():
                break

            next_run = self._next_run.get(definition.name)
            if next_run is None:
                self._next_run[definition.name] = compute_next_run(
                    definition.cron, now
                )
                continue

            if not should_fire(next_run, now):
                continue

            self._next_run[definition.name] = compute_next_run(definition.cron, now)
            self._fire(definition)
            fired += 1

        return fired

    def run_startup_jobs(self) -> int:
        """Run every job flagged ``run_on_startup`` once, immediately."""
        fired = 0
        for definition in self._registry:
            if definition.run_on_startup:
                self._fire(definition)
                fired += 1
        return fired

    def next_run_at(self, job_name: str) -> datetime | None:
        return self._next_run.get(job_name)

    def start(self) -> None:
        """Start polling in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="catering-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={
                "tick_interval": self._tick_interval,
                "jobs": list(self._registry.names()),
            },
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current tick to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until stop is signalled.  Returns True if it was."""
        return self._stop_event.wait(timeout=timeout)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _fire(self, definition: JobDefinition) -> None:
        try:
            definition.handler()
        except Exception:
            logger.exception("job_failed", extra={"job": definition.name})

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)
