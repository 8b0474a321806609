from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from assetstore.adapters.clock import SystemClock
from assetstore.adapters.local_storage import LocalFileStorage
from assetstore.adapters.sqlite.migrator import SQLiteMigrator
from assetstore.adapters.sqlite.repos import SQLiteAssetRecordRepo, SQLiteCounterStore
from assetstore.adapters.thumbnail_pool import ThumbnailWorkerPool
from assetstore.adapters.thumbnails import PillowThumbnailer
from assetstore.app_shell.rate_limit import RateLimiter
from assetstore.components.assets import AssetService, create_asset_service
from assetstore.components.retention import RetentionSweeper, create_retention_sweeper
from assetstore.rules.models import Rules


@dataclass
class ServiceContext:
    asset_service: AssetService
    sweeper: RetentionSweeper
    asset_repo: SQLiteAssetRecordRepo
    storage: LocalFileStorage
    thumbnailer: PillowThumbnailer | None
    thumbnail_pool: ThumbnailWorkerPool | None
    rate_limiter: RateLimiter
    rules: Rules
    db_path: str
    clock: Any = None

    @classmethod
    def create(
        cls,
        db_path: str | Path,
        uploads_path: str | Path,
        rules: Rules,
        clock: Any = None,
    ) -> ServiceContext:
        db_path = str(db_path)
        clock = clock or SystemClock()
        thumbs = rules.thumbnails

        asset_repo = SQLiteAssetRecordRepo(db_path)
        storage = LocalFileStorage(uploads_path, derived_dir=thumbs.directory)

        thumbnailer: PillowThumbnailer | None = None
        pool: ThumbnailWorkerPool | None = None
        if thumbs.enabled:
            thumbnailer = PillowThumbnailer(
                storage,
                max_size=(thumbs.max_width, thumbs.max_height),
                quality=thumbs.quality,
                prefix=thumbs.prefix,
                directory=thumbs.directory,
            )
            if thumbs.mode == "background":
                pool = ThumbnailWorkerPool(
                    thumbnailer,
                    asset_repo,
                    workers=thumbs.workers,
                    queue_size=thumbs.queue_size,
                )

        asset_service = create_asset_service(
            asset_repo,
            storage,
            clock,
            rules.uploads,
            thumbnailer=thumbnailer,
            derive_queue=pool,
        )
        sweeper = create_retention_sweeper(asset_repo, storage, clock, rules.retention)
        rate_limiter = RateLimiter(rules.rate_limits, SQLiteCounterStore(db_path))

        return cls(
            asset_service=asset_service,
            sweeper=sweeper,
            asset_repo=asset_repo,
            storage=storage,
            thumbnailer=thumbnailer,
            thumbnail_pool=pool,
            rate_limiter=rate_limiter,
            rules=rules,
            db_path=db_path,
            clock=clock,
        )

    def migrate(self) -> list[str]:
        return SQLiteMigrator(self.db_path).run_migrations()

    def close(self) -> None:
        if self.thumbnail_pool is not None:
            self.thumbnail_pool.shutdown(wait=True)
