"""
Byte Storage Port.

Protocol-based interface for the durable byte store that holds primary
assets and their derived thumbnails.
Implementations: Local filesystem (now), S3-compatible (future).

Invariants:
- A key is written at most once; storage names are unique by construction
- A failed write leaves no partial bytes behind
- sha256() always re-reads bytes from durable storage
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Protocol


@dataclass(frozen=True)
class StoredObject:
    """Result of a confirmed write."""

    key: str
    size_bytes: int


class StoragePort(Protocol):
    """
    Byte store port interface.

    Keys are relative paths such as "1700000000000-ab12cd34.png" or
    "thumbnails/thumb_1700000000000-ab12cd34.png.jpg".
    """

    def ensure_dirs(self) -> None:
        """Create the primary and derived locations. Idempotent."""
        ...

    def put(self, key: str, data: bytes | BinaryIO) -> StoredObject:
        """
        Durably write the full payload under key.

        Raises:
            KeyExistsError: If key already exists
            StorageWriteError: If the write failed (partial bytes are removed)
        """
        ...

    def open(self, key: str) -> BinaryIO:
        """
        Open a read handle to the bytes under key. Caller closes it.

        Raises:
            KeyNotFoundError: If key doesn't exist
        """
        ...

    def get(self, key: str) -> bytes:
        """Read all bytes under key. Raises KeyNotFoundError."""
        ...

    def sha256(self, key: str) -> str:
        """Hex SHA-256 of the persisted bytes. Raises KeyNotFoundError."""
        ...

    def size(self, key: str) -> int:
        """Byte length of the persisted object. Raises KeyNotFoundError."""
        ...

    def exists(self, key: str) -> bool:
        """Check if key exists in storage."""
        ...

    def delete(self, key: str) -> bool:
        """
        Delete object by key.

        Returns:
            True if deleted, False if key didn't exist
        """
        ...


class StorageError(Exception):
    """Base class for storage errors."""


class KeyExistsError(StorageError):
    """Raised when attempting to write to an existing key."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Key already exists: {key}")


class KeyNotFoundError(StorageError):
    """Raised when key doesn't exist."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Key not found: {key}")


class StorageWriteError(StorageError):
    """Raised when a write could not be completed. No bytes remain under the key."""

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Write failed for {key}: {reason}")
