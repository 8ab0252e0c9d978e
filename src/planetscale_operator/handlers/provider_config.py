"""Handlers for ProviderConfig resources."""

from __future__ import annotations

import logging
from typing import Any

import kopf

from .. import metrics
from ..constants import KIND_PROVIDER_CONFIG, PROVIDER_GROUP_VERSION
from ..store import get_k8s_client
from ..tracing import trace_span
from .shared import list_provider_config_usages

logger = logging.getLogger(__name__)

USAGE_RECHECK_DELAY = 30


def count_users(name: str) -> int:
    return len(list_provider_config_usages(get_k8s_client(), name))


@kopf.on.create(PROVIDER_GROUP_VERSION, KIND_PROVIDER_CONFIG)
@kopf.on.update(PROVIDER_GROUP_VERSION, KIND_PROVIDER_CONFIG)
@kopf.on.resume(PROVIDER_GROUP_VERSION, KIND_PROVIDER_CONFIG)
def handle_provider_config(meta: dict[str, Any], patch: kopf.Patch, **kwargs: Any) -> None:
    """Record how many managed resources use this ProviderConfig."""
    name = meta.get("name", "unknown")
    with trace_span("reconcile_provider_config", kind=KIND_PROVIDER_CONFIG, attributes={"provider_config.name": name}):
        users = count_users(name)
        patch.status["users"] = users
        metrics.reconcile_total.labels(kind=KIND_PROVIDER_CONFIG, result="success").inc()


@kopf.on.delete(PROVIDER_GROUP_VERSION, KIND_PROVIDER_CONFIG)
def handle_provider_config_delete(meta: dict[str, Any], **kwargs: Any) -> None:
    """Block deletion while managed resources still use this ProviderConfig.

    Raises:
        kopf.TemporaryError: While usages remain
    """
    name = meta.get("name", "unknown")
    users = count_users(name)
    if users:
        logger.info(f"ProviderConfig {name} is still used by {users} resource(s)")
        raise kopf.TemporaryError(
            f"ProviderConfig {name} is still in use by {users} resource(s)",
            delay=USAGE_RECHECK_DELAY,
        )
