"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_CANNOT_CONNECT,
    EVENT_REASON_CANNOT_CREATE,
    EVENT_REASON_CANNOT_DELETE,
    EVENT_REASON_CANNOT_OBSERVE,
    EVENT_REASON_CANNOT_UPDATE,
    EVENT_REASON_CREATED,
    EVENT_REASON_DELETED,
    REASON_CONNECT_ERROR,
    REASON_CREATE_ERROR,
    REASON_DELETE_ERROR,
    REASON_EXTERNAL_RESOURCE_LOST,
    REASON_OBSERVE_ERROR,
    REASON_UPDATE_ERROR,
)

_FAILURE_REASONS = {
    REASON_CONNECT_ERROR: EVENT_REASON_CANNOT_CONNECT,
    REASON_OBSERVE_ERROR: EVENT_REASON_CANNOT_OBSERVE,
    REASON_CREATE_ERROR: EVENT_REASON_CANNOT_CREATE,
    REASON_UPDATE_ERROR: EVENT_REASON_CANNOT_UPDATE,
    REASON_DELETE_ERROR: EVENT_REASON_CANNOT_DELETE,
    REASON_EXTERNAL_RESOURCE_LOST: EVENT_REASON_CANNOT_CREATE,
}


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Resource body (apiVersion, kind and metadata)
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_created(body: dict[str, Any], external_name: str) -> None:
    """Emit external resource created event."""
    emit_event(body, EVENT_REASON_CREATED, f"Successfully requested creation of external resource {external_name}")


def emit_deleted(body: dict[str, Any]) -> None:
    """Emit external resource deleted event."""
    emit_event(body, EVENT_REASON_DELETED, "Successfully requested deletion of external resource")


def emit_reconcile_failed(body: dict[str, Any], reason_code: str, message: str) -> None:
    """Emit a warning for a failed reconcile stage.

    Args:
        body: Resource body
        reason_code: Synced condition reason (e.g. "ObserveError")
        message: Sanitized failure message
    """
    emit_event(body, _FAILURE_REASONS.get(reason_code, reason_code), message, type_="Warning")
