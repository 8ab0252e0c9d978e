"""Cancellation contexts and correlation IDs for reconciliations."""

from __future__ import annotations

import contextvars
import threading
import time
from contextlib import contextmanager
from typing import Any, Iterator

# Context variable for storing correlation ID
correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


class ContextCancelledError(Exception):
    """Raised when a blocking operation is attempted on a cancelled context."""


class Context:
    """Deadline and cancellation token passed into every blocking call.

    A child context shares its parent's cancellation: cancelling the parent
    cancels every child, while a child's own deadline never outlives the
    parent's.
    """

    def __init__(
        self,
        deadline: float | None = None,
        parent: Context | None = None,
    ) -> None:
        self._event = threading.Event()
        self._parent = parent
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline

    @classmethod
    def background(cls) -> Context:
        """Return a context with no deadline."""
        return cls()

    def with_timeout(self, seconds: float) -> Context:
        """Derive a child context that expires after ``seconds``."""
        return Context(deadline=time.monotonic() + seconds, parent=self)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._parent is not None and self._parent.cancelled:
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def timeout(self, default: float) -> float:
        """Bound a per-call timeout by the time left in this context."""
        remaining = self.remaining()
        if remaining is None:
            return default
        return min(default, remaining)

    def check(self) -> None:
        """Raise if the context was cancelled or its deadline has passed.

        Raises:
            ContextCancelledError: If no further blocking work may start
        """
        if self.cancelled:
            raise ContextCancelledError("context cancelled or deadline exceeded")


def get_correlation_id() -> str | None:
    """Get the correlation ID from the current context.

    Returns:
        Correlation ID if set, None otherwise
    """
    return correlation_id.get()


@contextmanager
def with_correlation_id(corr_id: str) -> Iterator[str]:
    """Context manager to set a correlation ID for the duration of a block.

    Args:
        corr_id: Correlation ID to use

    Yields:
        The correlation ID
    """
    token = correlation_id.set(corr_id)
    try:
        yield corr_id
    finally:
        correlation_id.reset(token)


def get_context_dict(additional: dict[str, Any] | None = None) -> dict[str, Any]:
    """Get a dictionary of context values.

    Args:
        additional: Additional key-value pairs to include

    Returns:
        Dictionary with context values including correlation_id
    """
    ctx = {}

    corr_id = get_correlation_id()
    if corr_id:
        ctx["correlation_id"] = corr_id

    if additional:
        ctx.update(additional)

    return ctx
