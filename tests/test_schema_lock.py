"""Tests for the schema upgrade lock shared by several processes."""

from __future__ import annotations

import threading

import pytest
from structlog.testing import capture_logs

from sqlspine import Db, RetryPolicy, SchemaManager
from sqlspine.errors import LedgerConsistencyError, SchemaLockError
from sqlspine.migrations.history import ID_LOCK, TYPE_LOCK


@pytest.fixture
def node_a(db_file):
    database = Db(db_file, process_ref="node-a")
    yield database
    database.close()


@pytest.fixture
def node_b(db_file):
    database = Db(db_file, process_ref="node-b")
    yield database
    database.close()


@pytest.fixture
def manager_a(node_a, no_wait):
    manager = SchemaManager(node_a, retry_policy=no_wait)
    manager.ensure_current_schema()
    return manager


@pytest.fixture
def manager_b(node_b, manager_a, no_wait):
    return SchemaManager(node_b, retry_policy=no_wait)


class TestLockRow:
    def test_history_starts_with_free_lock_row(self, manager_a):
        h = manager_a.history
        with manager_a.db.tx() as tx:
            rows = tx.new_select(h.id, h.type, h.process, h.description).execute().get_all(
                lambda r: r.values()
            )
        assert rows == [[ID_LOCK, TYPE_LOCK, None, None]]

    def test_acquire_and_release(self, manager_a):
        assert manager_a.acquire_schema_lock()
        assert manager_a.get_schema_lock_owner() == "node-a"
        manager_a.release_schema_lock()
        assert manager_a.get_schema_lock_owner() is None

    def test_description_names_owner(self, manager_a):
        manager_a.acquire_schema_lock()
        h = manager_a.history
        with manager_a.db.tx() as tx:
            description = tx.new_select(h.description).execute().get_first(lambda r: r.get(h.description))
        assert description == "node-a is upgrading schema"
        manager_a.release_schema_lock()

    def test_not_reentrant(self, manager_a):
        assert manager_a.acquire_schema_lock()
        assert not manager_a.acquire_schema_lock()
        manager_a.release_schema_lock()


class TestContention:
    def test_second_process_cannot_acquire(self, manager_a, manager_b):
        assert manager_a.acquire_schema_lock()
        assert not manager_b.acquire_schema_lock()
        assert manager_b.get_schema_lock_owner() == "node-a"

    def test_schema_lock_error_names_owner(self, manager_a, manager_b):
        manager_a.acquire_schema_lock()
        with pytest.raises(SchemaLockError) as exc_info:
            manager_b.ensure_current_schema()
        error = exc_info.value
        assert error.context.process == "node-b"
        assert error.context.metadata["owner"] == "node-a"

    def test_acquired_after_release(self, manager_a, manager_b):
        manager_a.acquire_schema_lock()
        manager_a.release_schema_lock()
        assert manager_b.acquire_schema_lock()
        assert manager_b.get_schema_lock_owner() == "node-b"
        manager_b.release_schema_lock()

    def test_release_by_non_owner(self, manager_a, manager_b):
        manager_a.acquire_schema_lock()
        with pytest.raises(LedgerConsistencyError) as exc_info:
            manager_b.release_schema_lock()
        assert exc_info.value.affected == 0
        assert manager_a.get_schema_lock_owner() == "node-a"

    def test_release_when_free(self, manager_a):
        with pytest.raises(LedgerConsistencyError):
            manager_a.release_schema_lock()

    def test_force_release(self, manager_a, manager_b):
        manager_a.acquire_schema_lock()
        assert manager_b.force_release_schema_lock() == "node-a"
        assert manager_b.get_schema_lock_owner() is None
        assert manager_b.acquire_schema_lock()

    def test_lock_released_when_block_raises(self, manager_a, manager_b):
        with pytest.raises(ZeroDivisionError):
            with manager_a.schema_lock():
                1 / 0
        assert manager_b.get_schema_lock_owner() is None


class TestRetry:
    def test_attempts_with_delays(self, manager_a, node_b):
        sleeps = []
        policy = RetryPolicy.constant(4, 0.25, sleep=sleeps.append)
        manager_b = SchemaManager(node_b, retry_policy=policy)
        manager_a.acquire_schema_lock()
        with capture_logs() as logs:
            assert not manager_b.acquire_schema_lock()
        assert sleeps == [0.25, 0.25, 0.25]
        attempts = [e["attempt"] for e in logs if e["event"] == "schema.lock_attempt"]
        assert attempts == [1, 2, 3, 4]
        failed = [e for e in logs if e["event"] == "schema.lock_not_acquired"]
        assert failed[0]["owner"] == "node-a"

    def test_acquired_when_owner_releases_between_attempts(self, manager_a, node_b):
        manager_a.acquire_schema_lock()
        policy = RetryPolicy.constant(3, 0.0, sleep=lambda _delay: manager_a.release_schema_lock())
        manager_b = SchemaManager(node_b, retry_policy=policy)
        assert manager_b.acquire_schema_lock()
        assert manager_b.get_schema_lock_owner() == "node-b"

    def test_cancelled_wait(self, manager_a, node_b):
        cancel = threading.Event()
        cancel.set()
        manager_b = SchemaManager(node_b, retry_policy=RetryPolicy.constant(5, 10.0, cancel=cancel))
        manager_a.acquire_schema_lock()
        assert not manager_b.acquire_schema_lock()

    def test_default_policy_from_settings(self, monkeypatch, node_a):
        monkeypatch.setenv("SQLSPINE_LOCK_MAX_ATTEMPTS", "2")
        monkeypatch.setenv("SQLSPINE_LOCK_RETRY_DELAY", "0.5")
        manager = SchemaManager(node_a)
        assert manager.retry_policy.strategy.max_attempts == 2
        assert manager.retry_policy.strategy.delay == 0.5


class TestConcurrentUpgrade:
    def test_one_upgrader_at_a_time(self, db_file, manager_a):
        """Threads racing for the lock never both hold it."""
        holders = []
        errors = []
        barrier = threading.Barrier(4)

        def upgrade(n):
            db = Db(db_file, process_ref=f"worker-{n}")
            policy = RetryPolicy.constant(200, 0.01)
            manager = SchemaManager(db, retry_policy=policy)
            barrier.wait()
            try:
                with manager.schema_lock():
                    holders.append(n)
                    assert manager.get_schema_lock_owner() == f"worker-{n}"
            except Exception as e:
                errors.append(e)
            finally:
                db.close()

        threads = [threading.Thread(target=upgrade, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert errors == []
        assert sorted(holders) == [0, 1, 2, 3]
