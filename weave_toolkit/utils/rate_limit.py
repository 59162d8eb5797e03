"""Sliding-window rate limiting for tool categories."""

import threading
import time
from collections import defaultdict


class RateLimiter:
    """Simple in-memory rate limiter using a sliding window.

    Each key carries its own limit, so one limiter serves every category.
    A limit of 0 disables limiting for that call.
    """

    def __init__(self, window_size: float = 60.0):
        self.window_size = window_size
        self._requests: dict[str, list[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def is_allowed(self, key: str, limit: int) -> tuple[bool, int]:
        """
        Check if a call is allowed for the given key.

        Args:
            key: Identifier being limited (a category name).
            limit: Maximum calls per window for this key.

        Returns:
            Tuple of (is_allowed, remaining_calls).
        """
        if limit <= 0:
            return True, -1

        now = time.monotonic()
        window_start = now - self.window_size

        with self._lock:
            # Clean old requests
            self._requests[key] = [
                ts for ts in self._requests[key] if ts > window_start
            ]

            current_count = len(self._requests[key])
            if current_count >= limit:
                return False, 0

            # Record this request
            self._requests[key].append(now)
            return True, limit - current_count - 1

    def reset(self, key: str | None = None) -> None:
        """Reset rate limit for a key or all keys."""
        with self._lock:
            if key is None:
                self._requests.clear()
            else:
                self._requests.pop(key, None)
