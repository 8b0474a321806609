"""
Assets component port definitions.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from assetstore.core.entities import AssetRecord
from assetstore.core.ports.db import AssetRecordRepoPort
from assetstore.core.ports.storage import StoragePort
from assetstore.core.ports.thumbnails import DeriveQueuePort, ThumbnailerPort

__all__ = [
    "AssetRecordRepoPort",
    "AuthorizationPolicy",
    "ClockPort",
    "DeriveQueuePort",
    "StoragePort",
    "ThumbnailerPort",
    "owner_only",
]


class ClockPort(Protocol):
    def now_utc(self) -> datetime:
        """Return current UTC time."""
        ...


AuthorizationPolicy = Callable[[AssetRecord, str], bool]
"""Decides whether requester_id may mutate the record."""


def owner_only(record: AssetRecord, requester_id: str) -> bool:
    return record.owner_id == requester_id
