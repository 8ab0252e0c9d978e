"""Shared, jittered backoff for retrying managed resources."""

from __future__ import annotations

import random
import threading
import time
from typing import Hashable, Protocol


class RateLimiter(Protocol):
    def when(self, key: Hashable) -> float:
        """Return how long to wait before ``key`` may be retried."""
        ...

    def forget(self, key: Hashable) -> None:
        ...

    def num_requeues(self, key: Hashable) -> int:
        ...


class ExponentialBackoffLimiter:
    """Per-key exponential backoff, capped and jittered.

    Jitter only shortens a delay, so the cap holds while retries of keys that
    failed together still spread out.
    """

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        factor: float = 2.0,
        jitter: float = 0.1,
        rng: random.Random | None = None,
    ) -> None:
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.factor = factor
        self.jitter = jitter
        self._rng = rng or random.Random()
        self._failures: dict[Hashable, int] = {}
        self._lock = threading.Lock()

    def when(self, key: Hashable) -> float:
        with self._lock:
            exp = self._failures.get(key, 0)
            self._failures[key] = exp + 1
            jitter = self._rng.random() * self.jitter
        # Avoid float overflow for keys that have failed for a very long time
        if exp > 64:
            delay = self.max_delay
        else:
            delay = min(self.base_delay * (self.factor ** exp), self.max_delay)
        return delay * (1.0 - jitter)

    def forget(self, key: Hashable) -> None:
        with self._lock:
            self._failures.pop(key, None)

    def num_requeues(self, key: Hashable) -> int:
        with self._lock:
            return self._failures.get(key, 0)


class BucketRateLimiter:
    """Token bucket limiting the overall retry rate across every key."""

    def __init__(self, rate: float = 10.0, burst: int = 100) -> None:
        self.rate = rate
        self.burst = burst
        self._tokens = float(burst)
        self._last = time.monotonic()
        self._lock = threading.Lock()

    def when(self, key: Hashable) -> float:
        with self._lock:
            now = time.monotonic()
            self._tokens = min(self.burst, self._tokens + (now - self._last) * self.rate)
            self._last = now
            # Reserve a token; a negative balance is time owed to earlier reservations
            self._tokens -= 1.0
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.rate

    def forget(self, key: Hashable) -> None:
        pass

    def num_requeues(self, key: Hashable) -> int:
        return 0


class MaxOfRateLimiter:
    """Waits as long as the slowest of its limiters demands."""

    def __init__(self, *limiters: RateLimiter) -> None:
        self.limiters = limiters

    def when(self, key: Hashable) -> float:
        return max(limiter.when(key) for limiter in self.limiters)

    def forget(self, key: Hashable) -> None:
        for limiter in self.limiters:
            limiter.forget(key)

    def num_requeues(self, key: Hashable) -> int:
        return max(limiter.num_requeues(key) for limiter in self.limiters)


def default_rate_limiter(
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: float = 0.1,
    rate: float = 10.0,
) -> MaxOfRateLimiter:
    """Build the limiter shared by every managed kind in the process."""
    return MaxOfRateLimiter(
        ExponentialBackoffLimiter(base_delay=base_delay, max_delay=max_delay, jitter=jitter),
        BucketRateLimiter(rate=rate, burst=max(1, int(rate * 10))),
    )
