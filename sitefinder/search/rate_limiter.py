"""
Rate limiting implementation for API requests.
"""

import threading
import time


class RateLimiter:
    """
    Simple rate limiter that enforces minimum time intervals between requests.

    Shared by every worker that talks to the same provider, so the interval
    holds across threads: callers queue on the lock and each one sleeps until
    its slot comes up.
    """

    def __init__(self, min_interval: float):
        """
        Initialize the rate limiter.

        Args:
            min_interval: Minimum seconds between requests (0.0 = no limit)
        """
        self.min_interval = max(0.0, min_interval)
        self._last_request_time = 0.0
        self._lock = threading.Lock()

    def wait_if_needed(self) -> None:
        """
        Wait if necessary to maintain the minimum interval.

        This method should be called before each request.
        """
        if self.min_interval <= 0:
            return

        with self._lock:
            current_time = time.monotonic()
            time_since_last = current_time - self._last_request_time

            if time_since_last < self.min_interval:
                time.sleep(self.min_interval - time_since_last)

            self._last_request_time = time.monotonic()
