"""
SQLite Asset Record Repository.

Implements AssetRecordRepoPort using SQLite. One connection per call;
SQLite serializes writers, so two deletes of the same storage name can
never both report success.
"""

from __future__ import annotations

import builtins
import sqlite3
import time
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from assetstore.core.entities import AssetRecord
from assetstore.core.ports.db import DuplicateRecordError, RepositoryError
from assetstore.core.ports.thumbnails import DerivedAsset

BUSY_TIMEOUT_SECONDS = 30.0


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Convert SQLite row to dictionary."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def format_dt(value: datetime) -> str:
    """UTC ISO string with fixed precision so text comparison orders correctly."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


class SQLiteRepoBase:
    """Base class for SQLite repositories."""

    def __init__(self, db_path: str, connection: sqlite3.Connection | None = None):
        self.db_path = db_path
        self._external_conn = connection

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection (uses external if provided)."""
        if self._external_conn is not None:
            return self._external_conn

        conn = sqlite3.connect(self.db_path, timeout=BUSY_TIMEOUT_SECONDS)
        conn.row_factory = dict_factory
        return conn

    def _should_close(self) -> bool:
        return self._external_conn is None


class SQLiteAssetRecordRepo(SQLiteRepoBase):
    """SQLite implementation of AssetRecordRepoPort."""

    _COLUMNS = (
        "id, storage_name, original_name, mime_type, size_bytes, checksum, "
        "storage_location, derived_location, width, height, owner_id, created_at"
    )

    def create(self, record: AssetRecord) -> AssetRecord:
        conn = self._get_conn()
        try:
            conn.execute(
                f"INSERT INTO asset_records ({self._COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    str(record.id),
                    record.storage_name,
                    record.original_name,
                    record.mime_type,
                    record.size_bytes,
                    record.checksum,
                    record.storage_location,
                    record.derived_location,
                    record.width,
                    record.height,
                    record.owner_id,
                    format_dt(record.created_at),
                ),
            )
            conn.commit()
            return record
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise DuplicateRecordError(record.storage_name) from e
        except sqlite3.Error as e:
            conn.rollback()
            raise RepositoryError(f"Could not create record {record.storage_name}: {e}") from e
        finally:
            if self._should_close():
                conn.close()

    def find_by_storage_name(self, storage_name: str) -> AssetRecord | None:
        row = self._fetch_one(
            f"SELECT {self._COLUMNS} FROM asset_records WHERE storage_name = ?",
            (storage_name,),
        )
        return self._map_row(row) if row else None

    def list_by_owner(
        self,
        owner_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[builtins.list[AssetRecord], int]:
        conn = self._get_conn()
        try:
            row_count = conn.execute(
                "SELECT COUNT(*) AS cnt FROM asset_records WHERE owner_id = ?", (owner_id,)
            ).fetchone()
            total = row_count["cnt"] if row_count else 0

            rows = conn.execute(
                f"SELECT {self._COLUMNS} FROM asset_records WHERE owner_id = ? "
                "ORDER BY created_at DESC, storage_name DESC LIMIT ? OFFSET ?",
                (owner_id, limit, offset),
            ).fetchall()
            return [self._map_row(row) for row in rows], total
        except sqlite3.Error as e:
            raise RepositoryError(f"Could not list records for {owner_id}: {e}") from e
        finally:
            if self._should_close():
                conn.close()

    def delete_by_storage_name(self, storage_name: str, *, owner_id: str) -> bool:
        return self._execute_write(
            "DELETE FROM asset_records WHERE storage_name = ? AND owner_id = ?",
            (storage_name, owner_id),
        )

    def attach_derived(self, storage_name: str, derived: DerivedAsset) -> bool:
        return self._execute_write(
            "UPDATE asset_records SET derived_location = ?, width = ?, height = ? "
            "WHERE storage_name = ? AND derived_location IS NULL",
            (derived.location, derived.width, derived.height, storage_name),
        )

    def list_created_before(
        self,
        cutoff: datetime,
        *,
        limit: int = 500,
        offset: int = 0,
    ) -> builtins.list[AssetRecord]:
        return self._fetch_all(
            f"SELECT {self._COLUMNS} FROM asset_records WHERE created_at < ? "
            "ORDER BY created_at ASC, storage_name ASC LIMIT ? OFFSET ?",
            (format_dt(cutoff), limit, offset),
        )

    def list_all(self, *, limit: int = 500, offset: int = 0) -> builtins.list[AssetRecord]:
        return self._fetch_all(
            f"SELECT {self._COLUMNS} FROM asset_records "
            "ORDER BY created_at ASC, storage_name ASC LIMIT ? OFFSET ?",
            (limit, offset),
        )

    def _execute_write(self, query: str, params: tuple[Any, ...]) -> bool:
        conn = self._get_conn()
        try:
            cursor = conn.execute(query, params)
            conn.commit()
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            conn.rollback()
            raise RepositoryError(f"Write failed: {e}") from e
        finally:
            if self._should_close():
                conn.close()

    def _fetch_one(self, query: str, params: tuple[Any, ...]) -> dict[str, Any] | None:
        conn = self._get_conn()
        try:
            row: dict[str, Any] | None = conn.execute(query, params).fetchone()
            return row
        except sqlite3.Error as e:
            raise RepositoryError(f"Read failed: {e}") from e
        finally:
            if self._should_close():
                conn.close()

    def _fetch_all(
        self, query: str, params: tuple[Any, ...]
    ) -> builtins.list[AssetRecord]:
        conn = self._get_conn()
        try:
            rows = conn.execute(query, params).fetchall()
            return [self._map_row(row) for row in rows]
        except sqlite3.Error as e:
            raise RepositoryError(f"Read failed: {e}") from e
        finally:
            if self._should_close():
                conn.close()

    def _map_row(self, row: dict[str, Any]) -> AssetRecord:
        return AssetRecord(
            id=UUID(row["id"]),
            storage_name=row["storage_name"],
            original_name=row["original_name"],
            mime_type=row["mime_type"],
            size_bytes=row["size_bytes"],
            checksum=row["checksum"],
            storage_location=row["storage_location"],
            derived_location=row["derived_location"],
            width=row["width"],
            height=row["height"],
            owner_id=row["owner_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteCounterStore(SQLiteRepoBase):
    """
    Fixed-window request counters shared by every process using the same database.

    Keys are "{caller}:{route}"; each window is a separate row so old windows
    can be pruned without touching the current one.
    """

    def increment(self, bucket_key: str, window_seconds: int, now: float | None = None) -> int:
        """Count one request in the current window and return the new count."""
        current = time.time() if now is None else now
        window_start = int(current // window_seconds) * window_seconds

        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            conn.execute(
                "INSERT INTO rate_limit_counters (bucket_key, window_start, count) "
                "VALUES (?, ?, 1) "
                "ON CONFLICT(bucket_key, window_start) DO UPDATE SET count = count + 1",
                (bucket_key, window_start),
            )
            row = conn.execute(
                "SELECT count FROM rate_limit_counters WHERE bucket_key = ? AND window_start = ?",
                (bucket_key, window_start),
            ).fetchone()
            conn.execute(
                "DELETE FROM rate_limit_counters WHERE bucket_key = ? AND window_start < ?",
                (bucket_key, window_start),
            )
            conn.commit()
            return int(row["count"]) if row else 1
        except sqlite3.Error as e:
            conn.rollback()
            raise RepositoryError(f"Counter update failed for {bucket_key}: {e}") from e
        finally:
            if self._should_close():
                conn.close()
