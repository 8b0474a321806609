"""
Retention component - Periodic removal of expired assets.
"""

from .component import (
    DEFAULT_MAX_AGE,
    RetentionSweeper,
    create_retention_sweeper,
    run_sweep,
)
from .models import SweepInProgressError, SweepResult

__all__ = [
    "DEFAULT_MAX_AGE",
    "RetentionSweeper",
    "SweepInProgressError",
    "SweepResult",
    "create_retention_sweeper",
    "run_sweep",
]
