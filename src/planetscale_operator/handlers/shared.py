"""Connector and ProviderConfig helpers shared by every managed kind."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from kubernetes import client

from .. import metrics
from ..constants import (
    API_VERSION,
    KIND_PROVIDER_CONFIG_USAGE,
    LABEL_PROVIDER_CONFIG,
    PLURAL_PROVIDER_CONFIG_USAGES,
    PLURAL_PROVIDER_CONFIGS,
    PROVIDER_GROUP,
    PROVIDER_GROUP_VERSION,
)
from ..managed import ExternalClient, ManagedResource
from ..services.planetscale.base import PlanetScaleService
from ..utils.context import Context
from ..utils.errors import (
    STAGE_GET_CREDENTIALS,
    STAGE_GET_PROVIDER_CONFIG,
    STAGE_NEW_CLIENT,
    STAGE_TRACK_USAGE,
    ConnectError,
)
from ..utils.rate_limit import rate_limit_k8s
from ..utils.secrets import CredentialResolver

logger = logging.getLogger(__name__)

ServiceFactory = Callable[[bytes], PlanetScaleService]
ExternalFactory = Callable[[PlanetScaleService], ExternalClient]


def get_provider_config(
    api: client.CustomObjectsApi,
    name: str,
    request_timeout: float | None = None,
) -> dict[str, Any]:
    """Get a ProviderConfig by name.

    Raises:
        client.exceptions.ApiException: If not found or on API error
    """
    start_time = time.time()
    try:
        provider_config = rate_limit_k8s(api.get_cluster_custom_object)(
            group=PROVIDER_GROUP,
            version=API_VERSION,
            plural=PLURAL_PROVIDER_CONFIGS,
            name=name,
            _request_timeout=request_timeout,
        )
        metrics.api_call_total.labels(api_type="k8s", operation="get_provider_config", result="success").inc()
        return provider_config
    except Exception:
        metrics.api_call_total.labels(api_type="k8s", operation="get_provider_config", result="error").inc()
        raise
    finally:
        duration = time.time() - start_time
        metrics.api_call_duration_seconds.labels(api_type="k8s", operation="get_provider_config").observe(duration)


def list_provider_config_usages(
    api: client.CustomObjectsApi,
    provider_config_name: str,
) -> list[dict[str, Any]]:
    """List the usages recorded against a ProviderConfig."""
    result = rate_limit_k8s(api.list_cluster_custom_object)(
        group=PROVIDER_GROUP,
        version=API_VERSION,
        plural=PLURAL_PROVIDER_CONFIG_USAGES,
        label_selector=f"{LABEL_PROVIDER_CONFIG}={provider_config_name}",
    )
    return result.get("items", [])


class ProviderConfigUsageTracker:
    """Records which managed resources use which ProviderConfig.

    One usage object exists per managed resource, named after its UID and
    owned by it, so the usage disappears together with the resource.
    """

    def __init__(self, api: client.CustomObjectsApi, request_timeout: float = 30.0) -> None:
        self.api = api
        self.request_timeout = request_timeout

    def _usage_body(self, mg: ManagedResource) -> dict[str, Any]:
        pc_name = mg.provider_config_name
        return {
            "apiVersion": PROVIDER_GROUP_VERSION,
            "kind": KIND_PROVIDER_CONFIG_USAGE,
            "metadata": {
                "name": mg.uid,
                "labels": {LABEL_PROVIDER_CONFIG: pc_name},
                "ownerReferences": [{**mg.owner_reference(), "controller": True, "blockOwnerDeletion": True}],
            },
            "providerConfigRef": {"name": pc_name},
            "resourceRef": {"apiVersion": mg.api_version(), "kind": mg.KIND, "name": mg.name},
        }

    def track(self, ctx: Context, mg: ManagedResource) -> None:
        """Create the usage, or point an existing one at the current ProviderConfig."""
        ctx.check()
        body = self._usage_body(mg)
        timeout = ctx.timeout(self.request_timeout)
        kwargs = {"group": PROVIDER_GROUP, "version": API_VERSION, "plural": PLURAL_PROVIDER_CONFIG_USAGES}
        try:
            rate_limit_k8s(self.api.create_cluster_custom_object)(body=body, _request_timeout=timeout, **kwargs)
            return
        except client.exceptions.ApiException as e:
            if e.status != 409:
                raise

        existing = rate_limit_k8s(self.api.get_cluster_custom_object)(
            name=mg.uid, _request_timeout=timeout, **kwargs
        )
        if existing.get("providerConfigRef", {}).get("name") == mg.provider_config_name:
            return
        body["metadata"]["resourceVersion"] = existing.get("metadata", {}).get("resourceVersion")
        rate_limit_k8s(self.api.replace_cluster_custom_object)(
            name=mg.uid, body=body, _request_timeout=timeout, **kwargs
        )
        logger.info(f"Moved usage of {mg.KIND} {mg.name} to ProviderConfig {mg.provider_config_name}")


class Connector:
    """Produces an ExternalClient for a managed resource.

    Connecting tracks ProviderConfig usage, fetches the ProviderConfig,
    resolves its credentials and builds a service handle from them. Nothing
    is sent to the external system. Each failure is raised as a
    ``ConnectError`` tagged with the stage that failed.
    """

    def __init__(
        self,
        kube: client.CustomObjectsApi,
        usage: ProviderConfigUsageTracker,
        resolver: CredentialResolver,
        new_service: ServiceFactory,
        new_external: ExternalFactory,
        request_timeout: float = 30.0,
    ) -> None:
        self.kube = kube
        self.usage = usage
        self.resolver = resolver
        self.new_service = new_service
        self.new_external = new_external
        self.request_timeout = request_timeout

    def connect(self, ctx: Context, mg: ManagedResource) -> ExternalClient:
        try:
            self.usage.track(ctx, mg)
        except Exception as e:
            raise ConnectError(STAGE_TRACK_USAGE, e) from e

        try:
            ctx.check()
            pc = get_provider_config(self.kube, mg.provider_config_name, ctx.timeout(self.request_timeout))
        except Exception as e:
            raise ConnectError(STAGE_GET_PROVIDER_CONFIG, e) from e

        credentials = pc.get("spec", {}).get("credentials", {})
        try:
            data = self.resolver.resolve(ctx, credentials.get("source", ""), credentials)
        except Exception as e:
            raise ConnectError(STAGE_GET_CREDENTIALS, e) from e

        try:
            service = self.new_service(data)
        except Exception as e:
            raise ConnectError(STAGE_NEW_CLIENT, e) from e

        return self.new_external(service)
