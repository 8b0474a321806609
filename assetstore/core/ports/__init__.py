# assetstore - Ports (Protocol Interfaces)
# Abstract interfaces for adapters; no implementations here

from assetstore.core.ports.db import AssetRecordRepoPort, DuplicateRecordError, RepositoryError
from assetstore.core.ports.storage import (
    KeyExistsError,
    KeyNotFoundError,
    StorageError,
    StoragePort,
    StorageWriteError,
    StoredObject,
)
from assetstore.core.ports.thumbnails import (
    DerivedAsset,
    DeriveQueuePort,
    ThumbnailError,
    ThumbnailerPort,
)

__all__ = [
    "AssetRecordRepoPort",
    "DerivedAsset",
    "DeriveQueuePort",
    "DuplicateRecordError",
    "KeyExistsError",
    "KeyNotFoundError",
    "RepositoryError",
    "StorageError",
    "StoragePort",
    "StorageWriteError",
    "StoredObject",
    "ThumbnailError",
    "ThumbnailerPort",
]
