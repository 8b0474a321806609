from datetime import UTC, datetime
from threading import Lock
from typing import Protocol

from assetstore.rules.models import RateLimitRules


class TimePort(Protocol):
    """Protocol for time operations (enables testing with deterministic time)."""

    def now(self) -> datetime:
        """Return current UTC time."""
        ...


class SystemTimeAdapter:
    """Production time adapter using system clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class CounterStorePort(Protocol):
    def increment(self, bucket_key: str, window_seconds: int, now: float | None = None) -> int:
        """Count one request in the current window and return the new count."""
        ...


class InMemoryCounterStore:
    """Fixed-window counters local to one process."""

    def __init__(self) -> None:
        self._counts: dict[str, tuple[int, int]] = {}
        self._lock = Lock()

    def increment(self, bucket_key: str, window_seconds: int, now: float | None = None) -> int:
        current = datetime.now(UTC).timestamp() if now is None else now
        window_start = int(current // window_seconds) * window_seconds

        with self._lock:
            start, count = self._counts.get(bucket_key, (window_start, 0))
            if start != window_start:
                count = 0
            count += 1
            self._counts[bucket_key] = (window_start, count)
            return count


class RateLimiter:
    def __init__(
        self,
        rules: RateLimitRules,
        counters: CounterStorePort | None = None,
        time_port: TimePort | None = None,
    ):
        self.rules = rules
        self._counters = counters if counters is not None else InMemoryCounterStore()
        self._time = time_port if time_port is not None else SystemTimeAdapter()

    def allow_request(self, key: str, window: int, limit: int) -> bool:
        """
        Check if request is allowed.
        Every call is counted, so a caller that keeps retrying stays limited
        until the window rolls over.
        """
        if limit <= 0:
            return False

        count = self._counters.increment(key, window, now=self._time.now().timestamp())
        return count <= limit

    def check_upload(self, owner_id: str) -> bool:
        cfg = self.rules.upload
        return self.allow_request(f"upload:{owner_id}", cfg.window_seconds, cfg.max_requests)
