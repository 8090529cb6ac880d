"""Blocking token-bucket rate limiter shared by every outbound request."""

from __future__ import annotations

import threading
import time
from collections import deque

from loguru import logger

from avdownloader.types import PricePlan

# Longest single wait while a cancel event is being watched
_POLL_INTERVAL_SEC = 0.1


class RateLimiter:
    """A thread-safe rate limiter using the token bucket algorithm.

    The bucket starts full with ``rate_limit`` tokens. Each acquisition takes
    one token, and that token returns to the bucket ``period_sec`` seconds
    later, so any window of ``period_sec`` seconds contains at most
    ``rate_limit`` acquisitions.

    Usage:
        limiter = RateLimiter(5, 60)  # 5 requests per minute
        for _ in range(25):
            limiter.acquire()
            make_api_call()

    :param rate_limit: The maximum number of requests allowed in a period.
    :param period_sec: The time period in seconds.
    """

    def __init__(self, rate_limit: int = 5, period_sec: float = 60.0) -> None:
        if not isinstance(rate_limit, int) or rate_limit <= 0:
            raise ValueError("Rate limit must be a positive integer.")
        if not isinstance(period_sec, (int, float)) or period_sec <= 0:
            raise ValueError("Period must be a positive number.")

        self.rate_limit = rate_limit
        self.period_sec = float(period_sec)
        # Monotonic times at which consumed tokens become available again.
        self._refills: deque[float] = deque()
        self._condition = threading.Condition()

    @classmethod
    def for_plan(cls, plan: PricePlan) -> RateLimiter:
        """Build a per-minute limiter matching a subscription plan."""
        return cls(plan.requests_per_minute, 60.0)

    def _release_due(self, now: float) -> None:
        while self._refills and self._refills[0] <= now:
            self._refills.popleft()

    @property
    def available(self) -> int:
        """Number of tokens that can be taken without waiting."""
        with self._condition:
            self._release_due(time.monotonic())
            return self.rate_limit - len(self._refills)

    @property
    def is_rate_limited(self) -> bool:
        """True when the next :meth:`acquire` would have to wait."""
        return self.available == 0

    def acquire(
        self,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> bool:
        """Take one token, blocking until one is available.

        Waits forever unless ``cancel_event`` is set or ``timeout`` expires.

        :param cancel_event: Optional event that aborts the wait when set.
        :param timeout: Optional maximum wait in seconds.
        :returns: True if a token was taken, False if the wait was abandoned.
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._condition:
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    return False

                now = time.monotonic()
                self._release_due(now)
                if len(self._refills) < self.rate_limit:
                    self._refills.append(now + self.period_sec)
                    return True

                wait = self._refills[0] - now
                if deadline is not None:
                    if now >= deadline:
                        return False
                    wait = min(wait, deadline - now)
                if cancel_event is not None:
                    wait = min(wait, _POLL_INTERVAL_SEC)

                logger.trace("Rate limit reached, waiting {:.2f}s for a token", wait)
                self._condition.wait(wait)

    def reset(self) -> None:
        """Refill the bucket completely and wake up any waiters."""
        with self._condition:
            self._refills.clear()
            self._condition.notify_all()
