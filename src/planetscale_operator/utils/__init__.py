"""Utility functions for the PlanetScale Operator."""

from .conditions import set_ready_condition, set_synced_condition, update_condition
from .context import (
    Context,
    ContextCancelledError,
    get_context_dict,
    get_correlation_id,
    with_correlation_id,
)
from .events import emit_event
from .rate_limit import rate_limit_k8s, rate_limit_planetscale
from .secrets import get_secret_value

__all__ = [
    "Context",
    "ContextCancelledError",
    "update_condition",
    "set_ready_condition",
    "set_synced_condition",
    "emit_event",
    "get_secret_value",
    "rate_limit_k8s",
    "rate_limit_planetscale",
    "get_correlation_id",
    "with_correlation_id",
    "get_context_dict",
]
