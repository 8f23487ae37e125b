import time
from dataclasses import dataclass
from typing import Callable


@dataclass
class RateBucket:
    window_start: float
    count: int


class RateLimiter:
    """Fixed-window request counter, one bucket per client identity."""

    def __init__(
        self,
        max_requests: int = 30,
        window_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_s = window_s
        self._clock = clock
        self._buckets: dict[str, RateBucket] = {}

    def __len__(self) -> int:
        return len(self._buckets)

    def allow(self, identity: str) -> bool:
        now = self._clock()
        bucket = self._buckets.get(identity)
        if bucket is None or now - bucket.window_start >= self.window_s:
            self._buckets[identity] = RateBucket(window_start=now, count=1)
            return True
        bucket.count += 1
        return bucket.count <= self.max_requests

    def sweep(self) -> int:
        """Forget buckets that have been stale for two full windows."""
        cutoff = self._clock() - self.window_s * 2
        stale = [k for k, b in self._buckets.items() if b.window_start <= cutoff]
        for key in stale:
            del self._buckets[key]
        return len(stale)
