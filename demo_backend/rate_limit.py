"""
Sign-in rate limiting. In-memory sliding window per key (client IP), so a demo instance
exposed on a network cannot be used to brute-force customer tokens.
"""
import math
import threading
import time

_WINDOW_SECONDS = 60


class SlidingWindowLimiter:
    def __init__(self, window_seconds: int = _WINDOW_SECONDS):
        self._window = window_seconds
        self._hits: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def check_and_consume(self, key: str, limit: int) -> tuple[bool, int | None]:
        """
        Record a hit for key if it is under limit for the window.
        Returns (allowed, retry_after_seconds); retry_after is >= 1 when not allowed.
        """
        if limit <= 0:
            return True, None
        now = time.monotonic()
        with self._lock:
            hits = self._hits.setdefault(key, [])
            cutoff = now - self._window
            hits[:] = [t for t in hits if t > cutoff]
            if len(hits) >= limit:
                retry_after = max(1, math.ceil(self._window - (now - min(hits))))
                return False, retry_after
            hits.append(now)
            return True, None

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


login_limiter = SlidingWindowLimiter()
