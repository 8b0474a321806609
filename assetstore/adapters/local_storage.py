"""
Local Filesystem Storage Adapter.

Implements the StoragePort interface using the local filesystem.
Primary assets live directly under the base path; derived assets live in
a sub-directory (default "thumbnails").

Invariants:
- Writes go to a hidden ".partial" file, are fsync'ed, then renamed into place
- A failed write removes the partial file before raising
- Keys cannot escape the base path
"""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
from typing import BinaryIO

from assetstore.core.ports.storage import (
    KeyExistsError,
    KeyNotFoundError,
    StoredObject,
    StorageWriteError,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class LocalFileStorage:
    """
    Local filesystem implementation of StoragePort.

    Example key: "1700000000000-ab12cd34ef56ab78.png" -> {base_path}/1700000000000-ab12cd34ef56ab78.png
    """

    def __init__(
        self,
        base_path: str | Path,
        *,
        derived_dir: str = "thumbnails",
        create_dirs: bool = True,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        """
        Initialize local file storage.

        Args:
            base_path: Root directory for primary assets
            derived_dir: Sub-directory for derived assets
            create_dirs: Whether to create directories on construction
            chunk_size: Read/write chunk size in bytes
        """
        self.base_path = Path(base_path).resolve()
        self.derived_dir = derived_dir
        self.chunk_size = chunk_size

        if create_dirs:
            self.ensure_dirs()

    def ensure_dirs(self) -> None:
        self.base_path.mkdir(parents=True, exist_ok=True)
        (self.base_path / self.derived_dir).mkdir(parents=True, exist_ok=True)

    def _key_to_path(self, key: str) -> Path:
        target = (self.base_path / key).resolve()
        if target == self.base_path or not target.is_relative_to(self.base_path):
            raise ValueError(f"Path traversal attempt detected: {key}")
        return target

    def _chunks(self, data: bytes | BinaryIO):
        if isinstance(data, (bytes, bytearray, memoryview)):
            view = memoryview(data)
            for start in range(0, len(view), self.chunk_size):
                yield view[start : start + self.chunk_size]
            return

        while True:
            chunk = data.read(self.chunk_size)
            if not chunk:
                break
            yield chunk

    def put(self, key: str, data: bytes | BinaryIO) -> StoredObject:
        """
        Durably write data under key.

        Raises KeyExistsError if key already exists, StorageWriteError if the
        write could not be completed.
        """
        path = self._key_to_path(key)
        if path.exists():
            raise KeyExistsError(key)

        partial = path.with_name(f".{path.name}.partial")
        written = 0
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(partial, "xb") as f:
                for chunk in self._chunks(data):
                    f.write(chunk)
                    written += len(chunk)
                f.flush()
                os.fsync(f.fileno())
            os.replace(partial, path)
        except OSError as e:
            self._remove_quietly(partial)
            raise StorageWriteError(key, e.strerror or str(e)) from e

        return StoredObject(key=key, size_bytes=written)

    def open(self, key: str) -> BinaryIO:
        path = self._key_to_path(key)
        try:
            return open(path, "rb")
        except FileNotFoundError as e:
            raise KeyNotFoundError(key) from e

    def get(self, key: str) -> bytes:
        with self.open(key) as f:
            return f.read()

    def sha256(self, key: str) -> str:
        """Hash the bytes as they are on disk."""
        hasher = hashlib.sha256()
        with self.open(key) as f:
            for chunk in self._chunks(f):
                hasher.update(chunk)
        return hasher.hexdigest()

    def size(self, key: str) -> int:
        path = self._key_to_path(key)
        try:
            return path.stat().st_size
        except FileNotFoundError as e:
            raise KeyNotFoundError(key) from e

    def exists(self, key: str) -> bool:
        return self._key_to_path(key).is_file()

    def delete(self, key: str) -> bool:
        path = self._key_to_path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def _remove_quietly(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.exception("Could not remove partial file %s", path)


def create_local_storage(
    base_path: str | Path | None = None,
    *,
    env_var: str = "ASSETS_UPLOAD_DIR",
    default_path: str = "./data/uploads",
    derived_dir: str = "thumbnails",
) -> LocalFileStorage:
    """
    Factory function to create LocalFileStorage from config.

    Args:
        base_path: Explicit base path (overrides env var)
        env_var: Environment variable name for storage path
        default_path: Default path if not configured
        derived_dir: Sub-directory for derived assets

    Returns:
        Configured LocalFileStorage instance
    """
    if base_path is None:
        base_path = os.environ.get(env_var, default_path)

    return LocalFileStorage(base_path, derived_dir=derived_dir)
