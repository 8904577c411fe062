import threading
from collections import deque

from app.vision.types import UsageRecord


class MemoryUsageStore:
    """Process-wide ring buffer; the oldest records fall off at the retention cap.

    Counters are lifetime totals and are not reduced on eviction.
    """

    def __init__(self, retention: int = 1000):
        self._records: deque[UsageRecord] = deque(maxlen=retention)
        self._lock = threading.Lock()
        self._counters = {"requests": 0, "successes": 0, "failures": 0, "tokens": 0, "cost": 0.0}

    def record(self, entry: UsageRecord) -> None:
        with self._lock:
            self._records.append(entry)
            self._counters["requests"] += 1
            self._counters["successes" if entry.success else "failures"] += 1
            self._counters["tokens"] += entry.tokens
            self._counters["cost"] += entry.cost

    def records(self) -> list[UsageRecord]:
        with self._lock:
            return list(self._records)

    def counters(self) -> dict[str, float]:
        with self._lock:
            return dict(self._counters)
