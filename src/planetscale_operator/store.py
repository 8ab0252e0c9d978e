"""Desired-state store backed by the Kubernetes API."""

from __future__ import annotations

import time
from typing import Any, Protocol

from kubernetes import client

from . import metrics
from .utils.context import Context
from .utils.rate_limit import rate_limit_k8s


class ConflictError(Exception):
    """The object changed since it was read; the write was rejected."""


class ResourceStore(Protocol):
    """Object access with optimistic, per-object conflict checks."""

    def get(self, ctx: Context, name: str) -> dict[str, Any] | None:
        ...

    def update(self, ctx: Context, body: dict[str, Any]) -> dict[str, Any]:
        ...

    def update_status(self, ctx: Context, body: dict[str, Any]) -> dict[str, Any]:
        ...


class KubernetesResourceStore:
    """Cluster-scoped custom objects of one group/version/plural.

    Writes send the body's ``metadata.resourceVersion`` so the API server
    rejects them with 409 if the object changed concurrently.
    """

    def __init__(
        self,
        api: client.CustomObjectsApi,
        group: str,
        version: str,
        plural: str,
        request_timeout: float = 30.0,
    ) -> None:
        self.api = api
        self.group = group
        self.version = version
        self.plural = plural
        self.request_timeout = request_timeout

    def _call(self, ctx: Context, operation: str, fn: Any, **kwargs: Any) -> Any:
        ctx.check()
        start_time = time.time()
        try:
            result = rate_limit_k8s(fn)(
                group=self.group,
                version=self.version,
                plural=self.plural,
                _request_timeout=ctx.timeout(self.request_timeout),
                **kwargs,
            )
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
            return result
        except client.exceptions.ApiException as e:
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="error").inc()
            if e.status == 409:
                raise ConflictError(f"{self.plural} {kwargs.get('name')} was modified concurrently") from e
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

    def get(self, ctx: Context, name: str) -> dict[str, Any] | None:
        """Get an object by name.

        Returns:
            The object, or None if it does not exist
        """
        try:
            return self._call(ctx, f"get_{self.plural}", self.api.get_cluster_custom_object, name=name)
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise

    def update(self, ctx: Context, body: dict[str, Any]) -> dict[str, Any]:
        """Replace an object's metadata and spec.

        Raises:
            ConflictError: If the resourceVersion is stale
        """
        name = body["metadata"]["name"]
        return self._call(
            ctx,
            f"update_{self.plural}",
            self.api.replace_cluster_custom_object,
            name=name,
            body=body,
        )

    def update_status(self, ctx: Context, body: dict[str, Any]) -> dict[str, Any]:
        """Replace an object's status subresource.

        Raises:
            ConflictError: If the resourceVersion is stale
        """
        name = body["metadata"]["name"]
        return self._call(
            ctx,
            f"update_{self.plural}_status",
            self.api.replace_cluster_custom_object_status,
            name=name,
            body=body,
        )


def get_k8s_client() -> client.CustomObjectsApi:
    """Get Kubernetes CustomObjectsApi client."""
    load_kube_config()
    return client.CustomObjectsApi()


def get_core_client() -> client.CoreV1Api:
    """Get Kubernetes CoreV1Api client."""
    load_kube_config()
    return client.CoreV1Api()


def load_kube_config() -> None:
    from kubernetes import config

    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()
