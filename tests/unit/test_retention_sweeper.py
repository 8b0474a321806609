"""
RetentionSweeper tests: age-based expiry through the normal delete path.
"""

from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from assetstore.adapters.sweep_scheduler import SweepScheduler
from assetstore.components.assets import UploadFileInput, create_asset_service
from assetstore.components.retention import (
    RetentionSweeper,
    SweepInProgressError,
    create_retention_sweeper,
    run_sweep,
)
from assetstore.core.ports.db import RepositoryError
from assetstore.rules.models import RetentionRules


@pytest.fixture
def service(record_repo, local_storage, clock):
    return create_asset_service(record_repo, local_storage, clock)


@pytest.fixture
def sweeper(record_repo, local_storage, clock) -> RetentionSweeper:
    return RetentionSweeper(record_repo, local_storage, clock, max_age=timedelta(days=30))


def put(service, name: str, owner: str = "U1") -> str:
    result = service.upload(
        UploadFileInput(data=name.encode(), filename=name, content_type="text/csv"), owner
    )
    assert result.success
    return result.storage_name


class TestSweep:
    def test_deletes_only_expired(self, service, sweeper, clock, record_repo, local_storage) -> None:
        old_a = put(service, "a.csv", owner="U1")
        old_b = put(service, "b.csv", owner="U2")
        clock.advance(timedelta(days=20))
        fresh = put(service, "c.csv")
        clock.advance(timedelta(days=11))

        result = sweeper.sweep()

        assert result.deleted == 2
        assert result.failed == 0
        assert record_repo.find_by_storage_name(old_a) is None
        assert record_repo.find_by_storage_name(old_b) is None
        assert not local_storage.exists(old_a)
        assert record_repo.find_by_storage_name(fresh) is not None
        assert local_storage.exists(fresh)

    def test_second_run_deletes_nothing(self, service, sweeper, clock) -> None:
        put(service, "a.csv")
        clock.advance(timedelta(days=31))

        assert sweeper.sweep().deleted == 1
        assert sweeper.sweep().deleted == 0

    def test_threshold_override(self, service, sweeper, clock) -> None:
        put(service, "a.csv")
        clock.advance(timedelta(days=2))

        assert sweeper.sweep().deleted == 0
        assert sweeper.sweep(timedelta(days=1)).deleted == 1

    def test_zero_threshold_expires_everything_older_than_now(self, service, sweeper, clock) -> None:
        put(service, "a.csv")
        clock.advance(timedelta(hours=1))

        result = sweeper.sweep(timedelta(0))

        assert result.cutoff == clock.now_utc()
        assert result.deleted == 1

    def test_missing_bytes_still_swept(self, service, sweeper, clock, local_storage, record_repo) -> None:
        name = put(service, "a.csv")
        local_storage.delete(name)
        clock.advance(timedelta(days=31))

        result = sweeper.sweep()

        assert result.deleted == 1
        assert record_repo.find_by_storage_name(name) is None

    def test_failure_does_not_abort(self, service, clock, record_repo, local_storage) -> None:
        names = [put(service, f"{i}.csv") for i in range(3)]
        clock.advance(timedelta(days=31))

        class FlakyRepo:
            """Fails to delete the middle record."""

            def __getattr__(self, name):
                return getattr(record_repo, name)

            def delete_by_storage_name(self, storage_name, *, owner_id):
                if storage_name == names[1]:
                    raise RepositoryError("database is locked")
                return record_repo.delete_by_storage_name(storage_name, owner_id=owner_id)

        sweeper = RetentionSweeper(FlakyRepo(), local_storage, clock, batch_size=1)
        result = sweeper.sweep()

        assert result.deleted == 2
        assert result.failed == 1
        assert result.failed_names == [names[1]]
        assert record_repo.find_by_storage_name(names[1]) is not None

    def test_many_records_across_batches(self, service, clock, record_repo, local_storage) -> None:
        for i in range(7):
            put(service, f"{i}.csv")
        clock.advance(timedelta(days=31))

        result = RetentionSweeper(record_repo, local_storage, clock, batch_size=3).sweep()

        assert result.deleted == 7
        assert record_repo.list_all() == []


class TestSingleFlight:
    def test_concurrent_sweep_rejected(self, record_repo, local_storage, clock) -> None:
        entered = threading.Event()
        release = threading.Event()

        class SlowRepo:
            def __getattr__(self, name):
                return getattr(record_repo, name)

            def list_created_before(self, cutoff, *, limit=500, offset=0):
                entered.set()
                release.wait(timeout=5)
                return []

        sweeper = RetentionSweeper(SlowRepo(), local_storage, clock)
        worker = threading.Thread(target=sweeper.sweep)
        worker.start()
        assert entered.wait(timeout=5)

        try:
            assert sweeper.is_running
            with pytest.raises(SweepInProgressError):
                sweeper.sweep()
        finally:
            release.set()
            worker.join(timeout=5)

        assert not sweeper.is_running
        assert sweeper.sweep().deleted == 0


class TestFactories:
    def test_from_rules(self, record_repo, local_storage, clock) -> None:
        sweeper = create_retention_sweeper(
            record_repo, local_storage, clock, RetentionRules(max_age_days=7, batch_size=50)
        )
        assert sweeper.max_age == timedelta(days=7)
        assert sweeper.batch_size == 50

    def test_run_sweep(self, service, record_repo, local_storage, clock) -> None:
        put(service, "a.csv")
        clock.advance(timedelta(hours=2))

        result = run_sweep(
            timedelta(hours=1), repo=record_repo, storage=local_storage, clock=clock
        )

        assert result.deleted == 1
        assert result.cutoff == clock.now_utc() - timedelta(hours=1)


class TestScheduler:
    def test_trigger_now(self, service, sweeper, clock) -> None:
        put(service, "a.csv")
        clock.advance(timedelta(days=31))

        scheduler = SweepScheduler(sweeper, interval_seconds=3600)
        assert scheduler.trigger_now().deleted == 1

    def test_start_stop(self, sweeper) -> None:
        scheduler = SweepScheduler(sweeper, interval_seconds=3600)
        scheduler.start()
        assert scheduler.is_running
        scheduler.stop()
        assert not scheduler.is_running

    def test_loop_runs_sweeps(self, service, clock, record_repo, local_storage) -> None:
        put(service, "a.csv")
        clock.advance(timedelta(days=31))
        done = threading.Event()

        class SignallingSweeper(RetentionSweeper):
            def sweep(self, max_age=None):
                result = super().sweep(max_age)
                done.set()
                return result

        scheduler = SweepScheduler(
            SignallingSweeper(record_repo, local_storage, clock), interval_seconds=0.01
        )
        scheduler.start()
        try:
            assert done.wait(timeout=5)
        finally:
            scheduler.stop()

        assert record_repo.list_all() == []
