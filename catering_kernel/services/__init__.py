"""Kernel services: idempotency ledger and named locks."""

from catering_kernel.services.idempotency_service import (
    IdempotencyLedger,
    ProcessOnceResult,
)
from catering_kernel.services.named_lock import (
    LeaseLock,
    LockResult,
    NamedLock,
    PostgresAdvisoryLock,
    lock_key,
)

__all__ = [
    "IdempotencyLedger",
    "LeaseLock",
    "LockResult",
    "NamedLock",
    "PostgresAdvisoryLock",
    "ProcessOnceResult",
    "lock_key",
]
