"""Operator configuration loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from .constants import DEFAULT_API_URL


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class OperatorConfig:
    """Runtime settings for the operator process."""

    metrics_port: int = 8080
    max_workers: int = 4
    poll_interval_seconds: float = 60.0
    reconcile_timeout_seconds: float = 60.0
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 60.0
    backoff_jitter: float = 0.1
    global_rate_limit_per_second: float = 10.0
    api_url: str = DEFAULT_API_URL
    api_timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> OperatorConfig:
        """Build configuration from environment variables.

        Args:
            env: Mapping to read from (defaults to ``os.environ``)

        Returns:
            Populated configuration

        Raises:
            ValueError: If a variable holds an invalid value
        """
        if env is None:
            env = os.environ

        config = cls(
            metrics_port=_get_int(env, "METRICS_PORT", cls.metrics_port),
            max_workers=_get_int(env, "MAX_WORKERS", cls.max_workers),
            poll_interval_seconds=_get_float(env, "POLL_INTERVAL_SECONDS", cls.poll_interval_seconds),
            reconcile_timeout_seconds=_get_float(
                env, "RECONCILE_TIMEOUT_SECONDS", cls.reconcile_timeout_seconds
            ),
            backoff_base_seconds=_get_float(env, "BACKOFF_BASE_SECONDS", cls.backoff_base_seconds),
            backoff_max_seconds=_get_float(env, "BACKOFF_MAX_SECONDS", cls.backoff_max_seconds),
            backoff_jitter=_get_float(env, "BACKOFF_JITTER", cls.backoff_jitter),
            global_rate_limit_per_second=_get_float(
                env, "GLOBAL_RATE_LIMIT_PER_SECOND", cls.global_rate_limit_per_second
            ),
            api_url=env.get("PLANETSCALE_API_URL") or cls.api_url,
            api_timeout_seconds=_get_float(env, "PLANETSCALE_API_TIMEOUT_SECONDS", cls.api_timeout_seconds),
        )

        if config.backoff_base_seconds > config.backoff_max_seconds:
            raise ValueError("BACKOFF_BASE_SECONDS must not exceed BACKOFF_MAX_SECONDS")
        if config.backoff_jitter >= 1.0:
            raise ValueError("BACKOFF_JITTER must be below 1.0")
        if config.global_rate_limit_per_second == 0:
            raise ValueError("GLOBAL_RATE_LIMIT_PER_SECOND must be positive")
        return config
