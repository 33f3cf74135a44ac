"""
Named locks: with_lock contract, lease table semantics and advisory keys.
"""

import os

import pytest
from sqlalchemy import select

from catering_kernel.models.scheduler_lock import SchedulerLockModel
from catering_kernel.services.named_lock import (
    WELL_KNOWN_LOCK_KEYS,
    LeaseLock,
    NamedLock,
    PostgresAdvisoryLock,
    lock_key,
)


class InMemoryLock(NamedLock):
    def __init__(self):
        self.held = set()
        self.releases = 0

    def try_acquire(self, name):
        if name in self.held:
            return False
        self.held.add(name)
        return True

    def release(self, name):
        self.releases += 1
        self.held.discard(name)


# =============================================================================
# with_lock contract
# =============================================================================


class TestWithLock:

    def test_runs_body_and_returns_result(self):
        lock = InMemoryLock()

        outcome = lock.with_lock("job", lambda: 42)

        assert outcome.acquired
        assert outcome.result == 42
        assert lock.held == set()

    def test_miss_does_not_run_body(self):
        lock = InMemoryLock()
        lock.try_acquire("job")
        calls = []

        outcome = lock.with_lock("job", lambda: calls.append(1))

        assert not outcome.acquired
        assert outcome.result is None
        assert calls == []
        assert lock.releases == 0

    def test_release_on_raise_then_propagate(self):
        lock = InMemoryLock()

        def body():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            lock.with_lock("job", body)

        assert lock.releases == 1
        assert lock.held == set()

    def test_miss_is_logged(self, captured_logs):
        lock = InMemoryLock()
        lock.try_acquire("job")

        lock.with_lock("job", lambda: None)

        records = [r for r in captured_logs() if r["message"] == "lock_not_acquired"]
        assert records[0]["lock_name"] == "job"


# =============================================================================
# LeaseLock
# =============================================================================


class TestLeaseLock:

    def test_acquire_and_release(self, session_factory, clock):
        lock = LeaseLock(session_factory, clock, holder="a")

        assert lock.try_acquire("generate_work_items")
        lock.release("generate_work_items")

        assert lock.try_acquire("generate_work_items")

    def test_second_holder_denied_while_lease_valid(self, session_factory, clock):
        first = LeaseLock(session_factory, clock, holder="a")
        second = LeaseLock(session_factory, clock, holder="b")

        assert first.try_acquire("apply_fallback")
        assert not second.try_acquire("apply_fallback")

    def test_same_holder_is_not_reentrant(self, session_factory, clock):
        lock = LeaseLock(session_factory, clock, holder="a")

        assert lock.try_acquire("apply_fallback")
        assert not lock.try_acquire("apply_fallback")

    def test_expired_lease_taken_over(self, session_factory, clock, captured_logs):
        first = LeaseLock(session_factory, clock, holder="a", ttl_seconds=60)
        second = LeaseLock(session_factory, clock, holder="b", ttl_seconds=60)
        first.try_acquire("apply_fallback")

        clock.advance(61)

        assert second.try_acquire("apply_fallback")
        session = session_factory()
        try:
            row = session.execute(select(SchedulerLockModel)).scalar_one()
            assert row.holder == "b"
        finally:
            session.close()
        assert any(r["message"] == "expired_lease_taken_over" for r in captured_logs())

    def test_release_only_deletes_own_lease(self, session_factory, clock):
        first = LeaseLock(session_factory, clock, holder="a", ttl_seconds=60)
        second = LeaseLock(session_factory, clock, holder="b", ttl_seconds=60)
        first.try_acquire("apply_fallback")
        clock.advance(61)
        second.try_acquire("apply_fallback")

        # The original holder finishing late must not free b's lease
        first.release("apply_fallback")

        assert not first.try_acquire("apply_fallback")

    def test_names_are_independent(self, session_factory, clock):
        lock = LeaseLock(session_factory, clock, holder="a")
        assert lock.try_acquire("generate_work_items")
        assert lock.try_acquire("apply_fallback")

    def test_with_lock_releases_on_raise(self, session_factory, clock):
        lock = LeaseLock(session_factory, clock, holder="a")

        with pytest.raises(RuntimeError):
            lock.with_lock("apply_fallback", _raise_runtime_error)

        other = LeaseLock(session_factory, clock, holder="b")
        assert other.try_acquire("apply_fallback")

    def test_default_holder_names_host_and_pid(self, session_factory, clock):
        lock = LeaseLock(session_factory, clock)
        assert lock.holder.endswith(f":{os.getpid()}")


def _raise_runtime_error():
    raise RuntimeError("body failed")


# =============================================================================
# Advisory lock keys
# =============================================================================


class TestLockKey:

    def test_well_known_keys(self):
        assert lock_key("generate_work_items") == WELL_KNOWN_LOCK_KEYS["generate_work_items"]
        assert lock_key("apply_fallback") == 100002

    def test_hashed_key_is_stable_signed_bigint(self):
        key = lock_key("relay_outbox")
        assert key == lock_key("relay_outbox")
        assert -(2**63) <= key < 2**63
        assert key != lock_key("relay_outbox_2")


@pytest.mark.postgres
@pytest.mark.skipif(
    "CATERING_TEST_DATABASE_URL" not in os.environ,
    reason="requires PostgreSQL (set CATERING_TEST_DATABASE_URL)",
)
class TestPostgresAdvisoryLock:

    @pytest.fixture
    def pg_engine(self):
        from sqlalchemy import create_engine

        engine = create_engine(os.environ["CATERING_TEST_DATABASE_URL"])
        yield engine
        engine.dispose()

    def test_exclusive_across_lock_objects(self, pg_engine):
        first = PostgresAdvisoryLock(pg_engine)
        second = PostgresAdvisoryLock(pg_engine)

        assert first.try_acquire("apply_fallback")
        try:
            assert not second.try_acquire("apply_fallback")
        finally:
            first.release("apply_fallback")

        assert second.try_acquire("apply_fallback")
        second.release("apply_fallback")

    def test_with_lock_releases_on_raise(self, pg_engine):
        lock = PostgresAdvisoryLock(pg_engine)

        with pytest.raises(RuntimeError):
            lock.with_lock("generate_work_items", _raise_runtime_error)

        assert lock.try_acquire("generate_work_items")
        lock.release("generate_work_items")
