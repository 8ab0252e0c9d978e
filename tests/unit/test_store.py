"""Tests for the Kubernetes-backed resource store."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
from kubernetes import client

from planetscale_operator.constants import DATABASE_GROUP, PLURAL_DATABASES
from planetscale_operator.store import ConflictError, KubernetesResourceStore, load_kube_config
from planetscale_operator.utils.context import Context, ContextCancelledError


@pytest.fixture
def api():
    return Mock()


@pytest.fixture
def store(api):
    return KubernetesResourceStore(api, DATABASE_GROUP, "v1alpha1", PLURAL_DATABASES, request_timeout=10.0)


def body(name="shop", resource_version="1"):
    return {"metadata": {"name": name, "resourceVersion": resource_version}, "spec": {}}


class TestKubernetesResourceStore:
    def test_get(self, store, api, ctx):
        api.get_cluster_custom_object.return_value = body()

        assert store.get(ctx, "shop") == body()
        kwargs = api.get_cluster_custom_object.call_args.kwargs
        assert kwargs["group"] == DATABASE_GROUP
        assert kwargs["plural"] == PLURAL_DATABASES
        assert kwargs["name"] == "shop"
        assert kwargs["_request_timeout"] == 10.0

    def test_get_missing_returns_none(self, store, api, ctx):
        api.get_cluster_custom_object.side_effect = client.exceptions.ApiException(status=404)

        assert store.get(ctx, "shop") is None

    def test_get_other_errors_propagate(self, store, api, ctx):
        api.get_cluster_custom_object.side_effect = client.exceptions.ApiException(status=500)

        with pytest.raises(client.exceptions.ApiException):
            store.get(ctx, "shop")

    def test_update_sends_body(self, store, api, ctx):
        api.replace_cluster_custom_object.return_value = body(resource_version="2")

        result = store.update(ctx, body())

        assert result["metadata"]["resourceVersion"] == "2"
        kwargs = api.replace_cluster_custom_object.call_args.kwargs
        assert kwargs["name"] == "shop"
        assert kwargs["body"]["metadata"]["resourceVersion"] == "1"

    def test_update_conflict(self, store, api, ctx):
        api.replace_cluster_custom_object.side_effect = client.exceptions.ApiException(status=409)

        with pytest.raises(ConflictError, match="databases shop was modified concurrently"):
            store.update(ctx, body())

    def test_update_status_conflict(self, store, api, ctx):
        api.replace_cluster_custom_object_status.side_effect = client.exceptions.ApiException(status=409)

        with pytest.raises(ConflictError):
            store.update_status(ctx, body())

    def test_update_status(self, store, api, ctx):
        store.update_status(ctx, body())

        api.replace_cluster_custom_object_status.assert_called_once()
        api.replace_cluster_custom_object.assert_not_called()

    def test_timeout_bounded_by_context(self, store, api):
        ctx = Context.background().with_timeout(2.0)
        api.get_cluster_custom_object.return_value = body()

        store.get(ctx, "shop")

        assert api.get_cluster_custom_object.call_args.kwargs["_request_timeout"] <= 2.0

    def test_cancelled_context(self, store, api):
        ctx = Context.background()
        ctx.cancel()

        with pytest.raises(ContextCancelledError):
            store.get(ctx, "shop")
        api.get_cluster_custom_object.assert_not_called()


class TestLoadKubeConfig:
    @patch("kubernetes.config.load_kube_config")
    @patch("kubernetes.config.load_incluster_config")
    def test_prefers_incluster(self, mock_incluster, mock_kubeconfig):
        load_kube_config()

        mock_incluster.assert_called_once()
        mock_kubeconfig.assert_not_called()

    @patch("kubernetes.config.load_kube_config")
    @patch("kubernetes.config.load_incluster_config")
    def test_falls_back_to_kubeconfig(self, mock_incluster, mock_kubeconfig):
        from kubernetes import config

        mock_incluster.side_effect = config.ConfigException("not in cluster")

        load_kube_config()

        mock_kubeconfig.assert_called_once()
