"""Tests for the branch Password external client."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from planetscale_operator.constants import ANNOTATION_EXTERNAL_NAME, BRANCH_GROUP_VERSION
from planetscale_operator.handlers.password import PasswordClient, PasswordResource, connection_details
from planetscale_operator.services.planetscale import NotFoundError, Password
from planetscale_operator.utils.errors import ExternalResourceLostError


def make_password(name: str = "app", external_name: str | None = None, role: str | None = None) -> PasswordResource:
    metadata = {"name": name, "uid": f"uid-{name}"}
    if external_name:
        metadata["annotations"] = {ANNOTATION_EXTERNAL_NAME: external_name}
    for_provider = {"organization": "acme", "database": "shop", "branch": "main"}
    if role:
        for_provider["role"] = role
    return PasswordResource(
        {
            "apiVersion": BRANCH_GROUP_VERSION,
            "kind": "Password",
            "metadata": metadata,
            "spec": {"forProvider": for_provider},
        }
    )


def remote(**overrides) -> Password:
    values = {
        "id": "pw1",
        "name": "app",
        "role": "admin",
        "username": "u1",
        "access_host_url": "aws.connect.psdb.cloud",
    }
    values.update(overrides)
    return Password(**values)


class TestPasswordResource:
    def test_role_defaults_to_admin(self):
        assert make_password().role == "admin"
        assert make_password(role="reader").role == "reader"

    def test_fields(self):
        mg = make_password()

        assert (mg.organization, mg.database, mg.branch) == ("acme", "shop", "main")


class TestObserve:
    """Test cases for PasswordClient.observe."""

    def test_bound_password_is_fetched_by_id(self, ctx):
        service = Mock()
        service.get_password.return_value = remote()
        mg = make_password(external_name="pw1")

        observation = PasswordClient(service).observe(ctx, mg)

        service.get_password.assert_called_once_with(ctx, "acme", "shop", "main", "pw1")
        service.list_passwords.assert_not_called()
        assert observation.exists
        assert observation.up_to_date
        assert observation.ready
        assert observation.external_name == "pw1"
        assert observation.at_provider == {
            "id": "pw1",
            "name": "app",
            "role": "admin",
            "username": "u1",
            "accessHostUrl": "aws.connect.psdb.cloud",
        }

    def test_bound_password_gone(self, ctx):
        service = Mock()
        service.get_password.side_effect = NotFoundError("Not found", 404)

        observation = PasswordClient(service).observe(ctx, make_password(external_name="pw1"))

        assert observation.exists is False

    def test_unbound_password_found_by_display_name(self, ctx):
        service = Mock()
        service.list_passwords.return_value = [remote(id="pw0", name="other"), remote(id="pw7")]

        observation = PasswordClient(service).observe(ctx, make_password())

        assert observation.exists
        assert observation.external_name == "pw7"
        assert observation.up_to_date

    def test_unbound_password_not_found(self, ctx):
        service = Mock()
        service.list_passwords.return_value = [remote(id="pw0", name="other")]

        observation = PasswordClient(service).observe(ctx, make_password())

        assert observation.exists is False

    def test_repeated_observe_is_stable(self, ctx):
        service = Mock()
        service.list_passwords.return_value = [remote(id="pw7")]
        client = PasswordClient(service)
        mg = make_password()

        assert client.observe(ctx, mg) == client.observe(ctx, mg)
        service.create_password.assert_not_called()
        service.delete_password.assert_not_called()

    def test_renamed_password_is_drift(self, ctx):
        service = Mock()
        service.get_password.return_value = remote(name="renamed")

        observation = PasswordClient(service).observe(ctx, make_password(external_name="pw1"))

        assert not observation.up_to_date
        assert observation.drift == ["name"]

    def test_role_mismatch_is_drift(self, ctx):
        service = Mock()
        service.get_password.return_value = remote(role="reader")

        observation = PasswordClient(service).observe(ctx, make_password(external_name="pw1"))

        assert observation.drift == ["role"]


class TestCreate:
    """Test cases for PasswordClient.create."""

    def test_create_returns_connection_details(self, ctx):
        service = Mock()
        service.create_password.return_value = remote(plain_text="pscale_pw_secret")

        creation = PasswordClient(service).create(ctx, make_password(role="writer"))

        service.create_password.assert_called_once_with(ctx, "acme", "shop", "main", "app", role="writer")
        assert creation.external_name == "pw1"
        assert creation.connection_details == {
            "host": b"aws.connect.psdb.cloud",
            "username": b"u1",
            "password": b"pscale_pw_secret",
            "database": b"shop",
        }
        assert "plain_text" not in creation.at_provider

    def test_refuses_to_recreate_bound_password(self, ctx):
        service = Mock()

        with pytest.raises(ExternalResourceLostError, match=ANNOTATION_EXTERNAL_NAME) as exc_info:
            PasswordClient(service).create(ctx, make_password(external_name="pw1"))

        assert "pw1" in str(exc_info.value)
        assert exc_info.value.reason == "ExternalResourceLost"
        service.create_password.assert_not_called()

    def test_connection_details_fall_back_to_id(self):
        details = connection_details(make_password(), remote(username=None, access_host_url=None))

        assert details == {"username": b"pw1", "database": b"shop"}


class TestUpdateDelete:
    def test_update_is_noop(self, ctx):
        service = Mock()

        PasswordClient(service).update(ctx, make_password(external_name="pw1"))

        assert service.method_calls == []

    def test_delete(self, ctx):
        service = Mock()

        PasswordClient(service).delete(ctx, make_password(external_name="pw1"))

        service.delete_password.assert_called_once_with(ctx, "acme", "shop", "main", "pw1")

    def test_delete_not_found_is_success(self, ctx):
        service = Mock()
        service.delete_password.side_effect = NotFoundError("Not found", 404)

        PasswordClient(service).delete(ctx, make_password(external_name="pw1"))

    def test_delete_unbound_finds_by_display_name(self, ctx):
        """A password created but never bound is still deleted."""
        service = Mock()
        service.list_passwords.return_value = [remote(id="pw0", name="other"), remote(id="pw7")]

        PasswordClient(service).delete(ctx, make_password())

        service.delete_password.assert_called_once_with(ctx, "acme", "shop", "main", "pw7")

    def test_delete_unbound_without_match_skips(self, ctx):
        service = Mock()
        service.list_passwords.return_value = [remote(id="pw0", name="other")]

        PasswordClient(service).delete(ctx, make_password())

        service.delete_password.assert_not_called()
