import threading
import time
from unittest.mock import patch

from sitefinder.search.rate_limiter import RateLimiter


class TestRateLimiter:
    """Test suite for RateLimiter."""

    def test_rate_limiter_initialization(self):
        """Test rate limiter initialization."""
        limiter = RateLimiter(min_interval=0.4)
        assert limiter.min_interval == 0.4

    def test_rate_limiter_wait_enforcement(self):
        """Test that rate limiter enforces minimum intervals."""
        limiter = RateLimiter(min_interval=0.1)

        with patch('sitefinder.search.rate_limiter.time.sleep') as mock_sleep:
            # First call should not sleep
            limiter.wait_if_needed()
            mock_sleep.assert_not_called()

            # Immediate second call should sleep
            limiter.wait_if_needed()
            mock_sleep.assert_called_once()
            assert 0 < mock_sleep.call_args[0][0] <= 0.1

    def test_rate_limiter_with_zero_interval(self):
        """Test that a zero interval means no throttling."""
        limiter = RateLimiter(min_interval=0.0)

        with patch('sitefinder.search.rate_limiter.time.sleep') as mock_sleep:
            limiter.wait_if_needed()
            limiter.wait_if_needed()
            mock_sleep.assert_not_called()

    def test_rate_limiter_negative_interval(self):
        """Test that a negative interval is treated as zero."""
        assert RateLimiter(min_interval=-1.0).min_interval == 0.0

    def test_rate_limiter_actual_timing(self):
        """Test actual timing behavior."""
        limiter = RateLimiter(min_interval=0.2)

        limiter.wait_if_needed()  # First call - no wait
        time1 = time.monotonic()

        limiter.wait_if_needed()  # Second call - should wait
        time2 = time.monotonic()

        assert time2 - time1 >= 0.19  # Allow small margin for timing

    def test_rate_limiter_rapid_calls(self):
        """Test rate limiter behavior with rapid successive calls."""
        limiter = RateLimiter(min_interval=0.01)

        with patch('sitefinder.search.rate_limiter.time.sleep') as mock_sleep:
            for _ in range(5):
                limiter.wait_if_needed()

            # First call doesn't sleep
            assert mock_sleep.call_count == 4

    def test_rate_limiter_shared_across_threads(self):
        """Test that the interval holds across worker threads."""
        limiter = RateLimiter(min_interval=0.05)
        start = time.monotonic()

        threads = [threading.Thread(target=limiter.wait_if_needed) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # Four calls need at least three full intervals
        assert time.monotonic() - start >= 0.14
