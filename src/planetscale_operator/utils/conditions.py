"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import (
    COND_READY,
    COND_SYNCED,
    REASON_AVAILABLE,
    REASON_CREATING,
    REASON_DELETING,
    REASON_RECONCILE_SUCCESS,
    REASON_UNAVAILABLE,
)

STATUS_TRUE = "True"
STATUS_FALSE = "False"


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    Only the latest condition per type is kept.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        observed_generation: Generation when condition was observed

    Returns:
        Updated list of conditions
    """
    now = datetime.now(timezone.utc).isoformat()

    # Find existing condition
    existing_idx = None
    for idx, cond in enumerate(conditions):
        if cond.get("type") == condition_type:
            existing_idx = idx
            break

    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }

    if observed_generation is not None:
        new_condition["observedGeneration"] = observed_generation

    if existing_idx is not None:
        existing = conditions[existing_idx]
        # Only update lastTransitionTime if status changed
        if existing.get("status") == status:
            new_condition["lastTransitionTime"] = existing.get("lastTransitionTime", now)
        conditions[existing_idx] = new_condition
    else:
        conditions.append(new_condition)

    return conditions


def set_synced_condition(
    conditions: list[dict[str, Any]],
    status: bool,
    reason: str | None = None,
    message: str = "",
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the Synced condition.

    Args:
        conditions: List of existing conditions
        status: Whether the last reconciliation succeeded
        reason: Failure reason code (ignored when status is True)
        message: Human-readable message
        observed_generation: Generation when condition was observed
    """
    if status:
        reason = REASON_RECONCILE_SUCCESS
    return update_condition(
        conditions,
        COND_SYNCED,
        STATUS_TRUE if status else STATUS_FALSE,
        reason or "ReconcileError",
        message,
        observed_generation,
    )


def set_ready_condition(
    conditions: list[dict[str, Any]],
    status: str,
    reason: str,
    message: str = "",
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the Ready condition."""
    return update_condition(conditions, COND_READY, status, reason, message, observed_generation)


def set_available_condition(
    conditions: list[dict[str, Any]],
    message: str = "External resource is available",
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    return set_ready_condition(conditions, STATUS_TRUE, REASON_AVAILABLE, message, observed_generation)


def set_unavailable_condition(
    conditions: list[dict[str, Any]],
    message: str = "External resource is not available",
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    return set_ready_condition(conditions, STATUS_FALSE, REASON_UNAVAILABLE, message, observed_generation)


def set_creating_condition(
    conditions: list[dict[str, Any]],
    message: str = "External resource is being created",
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    return set_ready_condition(conditions, STATUS_FALSE, REASON_CREATING, message, observed_generation)


def set_deleting_condition(
    conditions: list[dict[str, Any]],
    message: str = "External resource is being deleted",
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    return set_ready_condition(conditions, STATUS_FALSE, REASON_DELETING, message, observed_generation)
