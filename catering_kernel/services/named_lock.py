"""
Named locks -- cross-instance mutual exclusion backed by the datastore.

Responsibility:
    Lets exactly one scheduler instance run a given job body at a time.  A
    lock miss is an expected outcome, reported through ``LockResult``, never
    raised.

Adapters:
    ``PostgresAdvisoryLock``  session-level ``pg_try_advisory_lock`` on a
                              dedicated connection held for the body.
    ``LeaseLock``             row in ``scheduler_locks`` with an expiry, so a
                              crashed holder's lock is reclaimed after ``ttl``.
                              Works on any SQL backend.

Invariants enforced:
    - ``with_lock`` releases on every exit path, including when the body
      raises; the exception still reaches the caller.
    - The body never runs when the lock was not acquired.
"""

from __future__ import annotations

import hashlib
import os
import socket
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Generic, TypeVar

from sqlalchemy import delete, text, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from catering_kernel.domain.clock import Clock
from catering_kernel.logging_config import get_logger
from catering_kernel.models.scheduler_lock import SchedulerLockModel

logger = get_logger("services.named_lock")

T = TypeVar("T")

# Advisory lock keys kept stable across releases; other names are hashed.
WELL_KNOWN_LOCK_KEYS: dict[str, int] = {
    "generate_work_items": 100001,
    "apply_fallback": 100002,
}


def lock_key(name: str) -> int:
    """Signed 64-bit advisory lock key for ``name``."""
    if name in WELL_KNOWN_LOCK_KEYS:
        return WELL_KNOWN_LOCK_KEYS[name]
    digest = hashlib.blake2b(name.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


def default_holder() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


@dataclass(frozen=True)
class LockResult(Generic[T]):
    acquired: bool
    result: T | None = None


class NamedLock(ABC):
    """
    Acquire / release by name, plus the ``with_lock`` wrapper jobs use.

    Non-goals:
        - No waiting or queueing.  A caller that misses the lock skips.
        - No re-entrancy.
    """

    @abstractmethod
    def try_acquire(self, name: str) -> bool:
        ...

    @abstractmethod
    def release(self, name: str) -> None:
        ...

    def with_lock(self, name: str, body: Callable[[], T]) -> LockResult[T]:
        if not self.try_acquire(name):
            logger.info("lock_not_acquired", extra={"lock_name": name})
            return LockResult(acquired=False)

        logger.debug("lock_acquired", extra={"lock_name": name})
        try:
            result = body()
        finally:
            self.release(name)
            logger.debug("lock_released", extra={"lock_name": name})
        return LockResult(acquired=True, result=result)


class PostgresAdvisoryLock(NamedLock):
    """
    Session-level PostgreSQL advisory lock.

    Each acquisition checks out its own connection from ``engine`` and keeps
    it until ``release``; the lock belongs to that database session, so a
    crashed process frees it when its connection drops.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._connections: dict[str, Connection] = {}

    def try_acquire(self, name: str) -> bool:
        if name in self._connections:
            return False
        conn = self._engine.connect()
        try:
            acquired = bool(
                conn.execute(
                    text("SELECT pg_try_advisory_lock(:key)"),
                    {"key": lock_key(name)},
                ).scalar()
            )
            conn.commit()
        except Exception:
            conn.close()
            raise
        if not acquired:
            conn.close()
            return False
        self._connections[name] = conn
        return True

    def release(self, name: str) -> None:
        conn = self._connections.pop(name, None)
        if conn is None:
            return
        try:
            conn.execute(
                text("SELECT pg_advisory_unlock(:key)"),
                {"key": lock_key(name)},
            )
            conn.commit()
        finally:
            conn.close()


class LeaseLock(NamedLock):
    """
    Lease-table lock.

    Acquire inserts a row for ``name``; if the row exists but its lease has
    expired, the lock is taken over.  Release deletes the row only when this
    holder still owns it.  Each call runs in its own short transaction.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock,
        holder: str | None = None,
        ttl_seconds: int = 3600,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._holder = holder or default_holder()
        self._ttl = timedelta(seconds=ttl_seconds)

    @property
    def holder(self) -> str:
        return self._holder

    def try_acquire(self, name: str) -> bool:
        now = self._clock.now()
        expires_at = now + self._ttl
        session = self._session_factory()
        try:
            try:
                session.add(
                    SchedulerLockModel(
                        lock_name=name,
                        holder=self._holder,
                        acquired_at=now,
                        expires_at=expires_at,
                    )
                )
                session.commit()
                return True
            except IntegrityError:
                session.rollback()

            taken_over = session.execute(
                update(SchedulerLockModel)
                .where(
                    SchedulerLockModel.lock_name == name,
                    SchedulerLockModel.expires_at < now,
                )
                .values(holder=self._holder, acquired_at=now, expires_at=expires_at)
            ).rowcount
            session.commit()
            if taken_over:
                logger.warning(
                    "expired_lease_taken_over",
                    extra={"lock_name": name, "holder": self._holder},
                )
            return taken_over == 1
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def release(self, name: str) -> None:
        session = self._session_factory()
        try:
            session.execute(
                delete(SchedulerLockModel).where(
                    SchedulerLockModel.lock_name == name,
                    SchedulerLockModel.holder == self._holder,
                )
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
