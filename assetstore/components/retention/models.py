"""
Retention component models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


class SweepInProgressError(Exception):
    """Raised when a sweep is requested while another is still running."""

    def __init__(self) -> None:
        super().__init__("A retention sweep is already in progress")


@dataclass(frozen=True)
class SweepResult:
    """Outcome of one sweep."""

    cutoff: datetime
    deleted: int = 0
    failed: int = 0
    skipped: int = 0
    failed_names: list[str] = field(default_factory=list)

    @property
    def examined(self) -> int:
        return self.deleted + self.failed + self.skipped
