"""Client-side rate limiting for outbound API calls."""

from __future__ import annotations

import os
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

_F = TypeVar("_F", bound=Callable[..., Any])

# Rate limit configuration
_K8S_RATE_LIMIT_PER_SECOND = float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "10.0"))
_PLANETSCALE_RATE_LIMIT_PER_SECOND = float(os.getenv("PLANETSCALE_RATE_LIMIT_PER_SECOND", "5.0"))

# Track next permitted call times; workers share these across threads
_lock = threading.Lock()
_next_call_time: dict[str, float] = {"k8s": 0.0, "planetscale": 0.0}


def _throttle(api_type: str, rate_per_second: float) -> None:
    """Block until a call to ``api_type`` is permitted.

    Each caller reserves the next free slot under the lock and sleeps outside
    it, so concurrent workers are spaced ``1 / rate`` seconds apart.
    """
    min_interval = 1.0 / rate_per_second
    with _lock:
        now = time.monotonic()
        slot = max(now, _next_call_time[api_type])
        _next_call_time[api_type] = slot + min_interval
    sleep_time = slot - now
    if sleep_time > 0:
        time.sleep(sleep_time)


def rate_limit_k8s(func: _F) -> _F:
    """Decorator to rate limit Kubernetes API calls."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        _throttle("k8s", _K8S_RATE_LIMIT_PER_SECOND)
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def rate_limit_planetscale(func: _F) -> _F:
    """Decorator to rate limit PlanetScale API calls."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        _throttle("planetscale", _PLANETSCALE_RATE_LIMIT_PER_SECOND)
        return func(*args, **kwargs)

    return wrapper  # type: ignore
