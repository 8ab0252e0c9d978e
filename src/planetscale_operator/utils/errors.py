"""Reconciliation error taxonomy and error sanitization utilities."""

from __future__ import annotations

import re

from ..constants import (
    REASON_CONNECT_ERROR,
    REASON_CREATE_ERROR,
    REASON_DELETE_ERROR,
    REASON_EXTERNAL_RESOURCE_LOST,
    REASON_OBSERVE_ERROR,
    REASON_TYPE_MISMATCH,
    REASON_UPDATE_ERROR,
)

# Connect stages
STAGE_TRACK_USAGE = "track_usage"
STAGE_GET_PROVIDER_CONFIG = "get_provider_config"
STAGE_GET_CREDENTIALS = "get_credentials"
STAGE_NEW_CLIENT = "new_client"

_STAGE_MESSAGES = {
    STAGE_TRACK_USAGE: "cannot track ProviderConfig usage",
    STAGE_GET_PROVIDER_CONFIG: "cannot get ProviderConfig",
    STAGE_GET_CREDENTIALS: "cannot get credentials",
    STAGE_NEW_CLIENT: "cannot create new Service",
}


class ReconcileError(Exception):
    """Base class for failures recorded on the Synced condition.

    Every subclass is retryable; the reason is the machine-readable code
    written to the condition.
    """

    reason: str = "ReconcileError"

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.cause = cause
        if cause is not None:
            message = f"{message}: {sanitize_exception(cause)}"
        super().__init__(message)


class ConnectError(ReconcileError):
    """The provider could not be reached; nothing was asked of it yet."""

    reason = REASON_CONNECT_ERROR

    def __init__(self, stage: str, cause: BaseException | None = None) -> None:
        self.stage = stage
        super().__init__(_STAGE_MESSAGES.get(stage, stage), cause)


class ObserveError(ReconcileError):
    reason = REASON_OBSERVE_ERROR


class CreateError(ReconcileError):
    reason = REASON_CREATE_ERROR


class UpdateError(ReconcileError):
    reason = REASON_UPDATE_ERROR


class DeleteError(ReconcileError):
    reason = REASON_DELETE_ERROR


class TypeMismatchError(ReconcileError):
    """A reconciler was handed an object of a kind it does not manage."""

    reason = REASON_TYPE_MISMATCH


class ExternalResourceLostError(ReconcileError):
    """A bound external resource is gone and cannot be recreated under its identifier."""

    reason = REASON_EXTERNAL_RESOURCE_LOST


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"pscale_tkn_[A-Za-z0-9_\-]+",
    r"pscale_pw_[A-Za-z0-9_\-]+",
    r"pscale_oauth_[A-Za-z0-9_\-]+",
    r"Bearer\s+[A-Za-z0-9_\-\.=]+",
]

# Fields whose values are redacted in free text
SENSITIVE_FIELDS = {
    "password",
    "plain_text",
    "service_token",
    "token",
    "authorization",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, "[REDACTED]", sanitized)

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"\b{field}\s*[:=]\s*([^\s,;\)]+)",
            rf"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: BaseException) -> str:
    """Sanitize exception message.

    Args:
        error: Exception object

    Returns:
        Sanitized error message
    """
    return sanitize_error_message(str(error))

