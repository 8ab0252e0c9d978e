"""Tests for Kubernetes event utilities."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from planetscale_operator.utils.events import (
    emit_created,
    emit_deleted,
    emit_event,
    emit_reconcile_failed,
)

BODY = {
    "apiVersion": "database.planetscale.crossplane.io/v1alpha1",
    "kind": "Database",
    "metadata": {"name": "shop", "uid": "uid-shop"},
}


class TestEmitEvent:
    """Test cases for emit_event function."""

    @patch("planetscale_operator.utils.events.kopf.event")
    def test_emit_event_normal(self, mock_event):
        """Test emitting normal event."""
        emit_event(BODY, "TestReason", "Test message")

        mock_event.assert_called_once_with(
            BODY,
            reason="TestReason",
            message="Test message",
            type="Normal",
        )

    @patch("planetscale_operator.utils.events.kopf.event")
    def test_emit_event_warning(self, mock_event):
        """Test emitting warning event."""
        emit_event(BODY, "ErrorReason", "Error occurred", type_="Warning")

        mock_event.assert_called_once_with(
            BODY,
            reason="ErrorReason",
            message="Error occurred",
            type="Warning",
        )


class TestLifecycleEvents:
    """Test cases for external resource lifecycle events."""

    @patch("planetscale_operator.utils.events.kopf.event")
    def test_emit_created(self, mock_event):
        emit_created(BODY, "shop")

        kwargs = mock_event.call_args.kwargs
        assert kwargs["reason"] == "CreatedExternalResource"
        assert "shop" in kwargs["message"]
        assert kwargs["type"] == "Normal"

    @patch("planetscale_operator.utils.events.kopf.event")
    def test_emit_deleted(self, mock_event):
        emit_deleted(BODY)

        assert mock_event.call_args.kwargs["reason"] == "DeletedExternalResource"

    @pytest.mark.parametrize(
        "reason_code,event_reason",
        [
            ("ConnectError", "CannotConnectToProvider"),
            ("ObserveError", "CannotObserveExternalResource"),
            ("CreateError", "CannotCreateExternalResource"),
            ("ExternalResourceLost", "CannotCreateExternalResource"),
            ("UpdateError", "CannotUpdateExternalResource"),
            ("DeleteError", "CannotDeleteExternalResource"),
        ],
    )
    @patch("planetscale_operator.utils.events.kopf.event")
    def test_emit_reconcile_failed(self, mock_event, reason_code, event_reason):
        emit_reconcile_failed(BODY, reason_code, "cannot do it")

        mock_event.assert_called_once_with(BODY, reason=event_reason, message="cannot do it", type="Warning")

    @patch("planetscale_operator.utils.events.kopf.event")
    def test_unknown_reason_passes_through(self, mock_event):
        emit_reconcile_failed(BODY, "TypeMismatch", "wrong kind")

        assert mock_event.call_args.kwargs["reason"] == "TypeMismatch"
