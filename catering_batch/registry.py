"""
JobRegistry -- the explicit, build-once table of scheduled jobs.

Contract:
    - ``register()`` adds a ``JobDefinition``; duplicate names raise
      ``ValueError``.
    - ``freeze()`` seals the registry.  Any later ``register()`` raises
      ``RegistryFrozenError``.  The composition root freezes it before the
      scheduler starts.
    - ``get()`` raises ``JobNotRegisteredError`` for unknown names.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from catering_kernel.exceptions import JobNotRegisteredError, RegistryFrozenError

from catering_batch.domain.schedule import CronSpec, parse_cron


@dataclass(frozen=True)
class JobDefinition:
    """One scheduled job: trigger, lock and handler.

    ``trigger`` is a 5-field cron expression evaluated in UTC and is
    validated on construction.
    """

    name: str
    trigger: str
    lock_name: str
    handler: Callable[[], Any]
    run_on_startup: bool = False

    def __post_init__(self) -> None:
        parse_cron(self.trigger)

    @property
    def cron(self) -> CronSpec:
        return parse_cron(self.trigger)


class JobRegistry:

    def __init__(self) -> None:
        self._jobs: dict[str, JobDefinition] = {}
        self._frozen = False

    def register(self, definition: JobDefinition) -> None:
        """
        Raises:
            RegistryFrozenError: If the registry has been frozen.
            ValueError: If a job with the same name is already registered.
        """
        if self._frozen:
            raise RegistryFrozenError(definition.name)
        if definition.name in self._jobs:
            raise ValueError(f"Job '{definition.name}' is already registered")
        self._jobs[definition.name] = definition

    def freeze(self) -> JobRegistry:
        self._frozen = True
        return self

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> JobDefinition:
        try:
            return self._jobs[name]
        except KeyError:
            raise JobNotRegisteredError(name, self.names()) from None

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._jobs))

    def __iter__(self) -> Iterator[JobDefinition]:
        return iter(self._jobs.values())

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, name: str) -> bool:
        return name in self._jobs
