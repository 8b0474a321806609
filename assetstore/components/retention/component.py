"""
Retention component - age-based expiry of stored assets.

A sweep walks records created before (now - max_age) oldest first and
removes each one through the same delete sequence an owner would trigger.

Invariants:
- Only one sweep runs at a time per sweeper instance
- A failing record is logged and counted; the sweep carries on
- deleted counts only records whose metadata was actually removed
"""

from __future__ import annotations

import logging
import threading
from datetime import timedelta

from assetstore.components.assets import (
    AssetError,
    AssetNotFoundError,
    ClockPort,
    StoragePort,
    owner_only,
    run_delete,
)
from assetstore.core.ports.db import AssetRecordRepoPort, RepositoryError
from assetstore.rules.models import RetentionRules

from .models import SweepInProgressError, SweepResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = timedelta(days=30)


class RetentionSweeper:
    def __init__(
        self,
        repo: AssetRecordRepoPort,
        storage: StoragePort,
        clock: ClockPort,
        *,
        max_age: timedelta = DEFAULT_MAX_AGE,
        batch_size: int = 500,
    ) -> None:
        self._repo = repo
        self._storage = storage
        self._clock = clock
        self.max_age = max_age
        self.batch_size = batch_size
        self._flight = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._flight.locked()

    def sweep(self, max_age: timedelta | None = None) -> SweepResult:
        """
        Delete every asset older than max_age.

        Raises:
            SweepInProgressError: Another sweep holds this sweeper
        """
        if not self._flight.acquire(blocking=False):
            raise SweepInProgressError()
        try:
            return self._sweep(max_age if max_age is not None else self.max_age)
        finally:
            self._flight.release()

    def _sweep(self, max_age: timedelta) -> SweepResult:
        cutoff = self._clock.now_utc() - max_age
        deleted = 0
        skipped = 0
        failed_names: list[str] = []

        logger.info("Retention sweep started (cutoff=%s)", cutoff.isoformat())

        while True:
            # Failed records stay in place, so skip past them
            batch = self._repo.list_created_before(
                cutoff, limit=self.batch_size, offset=len(failed_names)
            )
            if not batch:
                break

            for record in batch:
                try:
                    run_delete(
                        record.storage_name,
                        record.owner_id,
                        repo=self._repo,
                        storage=self._storage,
                        authorize=owner_only,
                        operation="sweep",
                    )
                    deleted += 1
                except AssetNotFoundError:
                    skipped += 1
                except (AssetError, RepositoryError) as e:
                    logger.error(
                        "Sweep could not delete %s (owner=%s): %s",
                        record.storage_name,
                        record.owner_id,
                        e,
                    )
                    failed_names.append(record.storage_name)

        result = SweepResult(
            cutoff=cutoff,
            deleted=deleted,
            failed=len(failed_names),
            skipped=skipped,
            failed_names=failed_names,
        )
        logger.info(
            "Retention sweep finished: %d deleted, %d failed, %d skipped",
            result.deleted,
            result.failed,
            result.skipped,
        )
        return result


def run_sweep(
    max_age: timedelta,
    *,
    repo: AssetRecordRepoPort,
    storage: StoragePort,
    clock: ClockPort,
    batch_size: int = 500,
) -> SweepResult:
    """One-off sweep without a long-lived sweeper."""
    sweeper = RetentionSweeper(repo, storage, clock, max_age=max_age, batch_size=batch_size)
    return sweeper.sweep()


def create_retention_sweeper(
    repo: AssetRecordRepoPort,
    storage: StoragePort,
    clock: ClockPort,
    rules: RetentionRules | None = None,
) -> RetentionSweeper:
    retention = rules or RetentionRules()
    return RetentionSweeper(
        repo,
        storage,
        clock,
        max_age=timedelta(days=retention.max_age_days),
        batch_size=retention.batch_size,
    )
