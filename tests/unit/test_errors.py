"""Tests for the error taxonomy and sanitization utilities."""

from __future__ import annotations

import pytest

from planetscale_operator.utils.errors import (
    STAGE_GET_CREDENTIALS,
    STAGE_TRACK_USAGE,
    ConnectError,
    CreateError,
    DeleteError,
    ExternalResourceLostError,
    ObserveError,
    ReconcileError,
    TypeMismatchError,
    UpdateError,
    sanitize_error_message,
    sanitize_exception,
)


class TestReconcileErrors:
    """Test cases for reconcile error classes."""

    @pytest.mark.parametrize(
        "error_cls,reason",
        [
            (ObserveError, "ObserveError"),
            (CreateError, "CreateError"),
            (UpdateError, "UpdateError"),
            (DeleteError, "DeleteError"),
            (TypeMismatchError, "TypeMismatch"),
            (ExternalResourceLostError, "ExternalResourceLost"),
        ],
    )
    def test_reason_codes(self, error_cls, reason):
        error = error_cls("cannot do it")
        assert error.reason == reason
        assert isinstance(error, ReconcileError)

    def test_cause_is_appended(self):
        cause = RuntimeError("connection reset")
        error = ObserveError("cannot observe external resource", cause)

        assert str(error) == "cannot observe external resource: connection reset"
        assert error.cause is cause

    def test_cause_is_sanitized(self):
        error = CreateError("cannot create external resource", RuntimeError("token=pscale_tkn_abc123"))

        assert "pscale_tkn_abc123" not in str(error)

    def test_connect_error_stage_message(self):
        error = ConnectError(STAGE_GET_CREDENTIALS, ValueError("Key 'token' not found in secret 'ps'"))

        assert error.stage == STAGE_GET_CREDENTIALS
        assert error.reason == "ConnectError"
        assert str(error) == "cannot get credentials: Key 'token' not found in secret 'ps'"

    def test_connect_error_without_cause(self):
        assert str(ConnectError(STAGE_TRACK_USAGE)) == "cannot track ProviderConfig usage"


class TestSanitizeErrorMessage:
    """Test cases for sanitize_error_message function."""

    def test_sanitize_service_token(self):
        """Test that PlanetScale service tokens are sanitized."""
        message = "Error: request failed with pscale_tkn_AbC123_xyz"
        result = sanitize_error_message(message)
        assert "pscale_tkn_AbC123_xyz" not in result
        assert "[REDACTED]" in result

    def test_sanitize_database_password(self):
        message = "Error: generated pscale_pw_S3cr3t for branch main"
        result = sanitize_error_message(message)
        assert "pscale_pw_S3cr3t" not in result

    def test_sanitize_bearer_header(self):
        message = "Authorization header Bearer eyJhbGciOi.abc rejected"
        result = sanitize_error_message(message)
        assert "eyJhbGciOi.abc" not in result

    def test_sanitize_password(self):
        """Test that passwords are sanitized."""
        message = "Error: password: mysecretpassword123"
        result = sanitize_error_message(message)
        assert "mysecretpassword123" not in result
        assert "[REDACTED]" in result

    def test_sanitize_multiple_fields(self):
        """Test sanitizing multiple sensitive fields."""
        message = "Error: token=abc123, plain_text=hunter2"
        result = sanitize_error_message(message)
        assert "abc123" not in result
        assert "hunter2" not in result
        assert result.count("[REDACTED]") >= 2

    def test_sanitize_case_insensitive(self):
        """Test that sanitization is case-insensitive."""
        message = "Error: PASSWORD: hunter2"
        result = sanitize_error_message(message)
        assert "hunter2" not in result

    def test_field_names_inside_words_are_kept(self):
        message = "passwords endpoint returned 500"
        assert sanitize_error_message(message) == message

    def test_no_sanitization_needed(self):
        """Test message without sensitive data."""
        message = "Error: Database 'shop' not found in organization 'acme'"
        assert sanitize_error_message(message) == message


class TestSanitizeException:
    def test_sanitize_value_error(self):
        """Test sanitizing ValueError."""
        result = sanitize_exception(ValueError("Invalid token: pscale_tkn_abc"))
        assert "pscale_tkn_abc" not in result

    def test_sanitize_generic_exception(self):
        """Test sanitizing a generic Exception."""
        assert sanitize_exception(Exception("Resource not found")) == "Resource not found"

