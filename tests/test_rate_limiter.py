"""Tests for the blocking token-bucket rate limiter."""

import threading
import time

import pytest

from avdownloader.data.rate_limiter import RateLimiter
from avdownloader.types import PricePlan


class TestRateLimiterInit:
    """Tests for limiter configuration."""

    def test_defaults_match_free_plan(self) -> None:
        """The default limiter allows 5 requests per minute."""
        limiter = RateLimiter()

        assert limiter.rate_limit == 5
        assert limiter.period_sec == 60.0
        assert limiter.available == 5

    @pytest.mark.parametrize(
        "plan,quota",
        [
            (PricePlan.FREE, 5),
            (PricePlan.PLAN30, 30),
            (PricePlan.PLAN75, 75),
            (PricePlan.PLAN150, 150),
            (PricePlan.PLAN300, 300),
            (PricePlan.PLAN600, 600),
            (PricePlan.PLAN1200, 1200),
        ],
    )
    def test_for_plan(self, plan: PricePlan, quota: int) -> None:
        """Price plans map to per-minute quotas."""
        limiter = RateLimiter.for_plan(plan)

        assert limiter.rate_limit == quota
        assert limiter.period_sec == 60.0

    @pytest.mark.parametrize("rate_limit", [0, -1, 2.5])
    def test_invalid_rate_limit_raises(self, rate_limit) -> None:
        """Rate limit must be a positive integer."""
        with pytest.raises(ValueError, match="positive integer"):
            RateLimiter(rate_limit, 1.0)

    @pytest.mark.parametrize("period", [0, -1.0])
    def test_invalid_period_raises(self, period) -> None:
        """Period must be positive."""
        with pytest.raises(ValueError, match="positive number"):
            RateLimiter(1, period)


class TestAcquire:
    """Tests for token acquisition."""

    def test_acquire_within_quota_does_not_block(self) -> None:
        """The bucket starts full."""
        limiter = RateLimiter(3, 60.0)

        start = time.monotonic()
        assert all(limiter.acquire() for _ in range(3))

        assert time.monotonic() - start < 1.0
        assert limiter.available == 0
        assert limiter.is_rate_limited

    def test_acquire_blocks_until_token_returns(self) -> None:
        """The request beyond the quota waits for the window to pass."""
        limiter = RateLimiter(2, 0.3)
        limiter.acquire()
        limiter.acquire()

        start = time.monotonic()
        assert limiter.acquire()
        elapsed = time.monotonic() - start

        assert elapsed >= 0.25

    def test_tokens_return_after_period(self) -> None:
        """Consumed tokens are available again one period later."""
        limiter = RateLimiter(1, 0.1)
        limiter.acquire()
        assert limiter.is_rate_limited

        time.sleep(0.15)

        assert not limiter.is_rate_limited
        assert limiter.available == 1

    def test_timeout_abandons_wait(self) -> None:
        """A timed acquire gives up without consuming a token."""
        limiter = RateLimiter(1, 60.0)
        limiter.acquire()

        start = time.monotonic()
        assert limiter.acquire(timeout=0.1) is False
        assert time.monotonic() - start < 5.0

    def test_cancel_event_already_set(self) -> None:
        """A set cancel event aborts immediately, even with tokens left."""
        limiter = RateLimiter(1, 60.0)
        cancel = threading.Event()
        cancel.set()

        assert limiter.acquire(cancel_event=cancel) is False
        assert limiter.available == 1

    def test_cancel_event_interrupts_wait(self) -> None:
        """Setting the cancel event wakes a blocked caller."""
        limiter = RateLimiter(1, 60.0)
        limiter.acquire()
        cancel = threading.Event()
        timer = threading.Timer(0.2, cancel.set)

        start = time.monotonic()
        timer.start()
        result = limiter.acquire(cancel_event=cancel)
        timer.join()

        assert result is False
        assert time.monotonic() - start < 5.0

    def test_reset_refills_bucket(self) -> None:
        """reset() makes every token available again."""
        limiter = RateLimiter(2, 60.0)
        limiter.acquire()
        limiter.acquire()

        limiter.reset()

        assert limiter.available == 2


class TestConcurrency:
    """Tests for concurrent callers sharing one limiter."""

    def test_concurrent_callers_never_exceed_quota(self) -> None:
        """Only rate_limit acquisitions succeed inside one window."""
        limiter = RateLimiter(4, 60.0)
        results: list[bool] = []
        lock = threading.Lock()

        def worker() -> None:
            acquired = limiter.acquire(timeout=0.3)
            with lock:
                results.append(acquired)

        threads = [threading.Thread(target=worker) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 4
        assert results.count(False) == 2
