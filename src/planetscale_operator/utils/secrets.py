"""Credential resolution and connection secret publishing."""

from __future__ import annotations

import base64
import logging
import os
from typing import TYPE_CHECKING, Any

from kubernetes import client

from ..constants import (
    CREDENTIALS_SOURCE_ENVIRONMENT,
    CREDENTIALS_SOURCE_FILESYSTEM,
    CREDENTIALS_SOURCE_SECRET,
    FIELD_MANAGER,
    LABEL_PROVIDER_CONFIG,
)
from .context import Context
from .rate_limit import rate_limit_k8s

if TYPE_CHECKING:
    from ..managed import ConnectionDetails, ManagedResource

logger = logging.getLogger(__name__)


def _decode(value: str | bytes) -> bytes:
    # Handle both string and bytes (different versions of kubernetes client)
    if isinstance(value, bytes):
        return value
    return base64.b64decode(value)


def get_secret_value(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
    key: str,
    request_timeout: float | None = None,
) -> bytes:
    """Get a value from a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace of the secret
        secret_name: Name of the secret
        key: Key in the secret
        request_timeout: Optional request timeout in seconds

    Returns:
        Secret value bytes

    Raises:
        ValueError: If secret or key not found
    """
    try:
        secret = rate_limit_k8s(api.read_namespaced_secret)(
            name=secret_name, namespace=namespace, _request_timeout=request_timeout
        )
    except client.exceptions.ApiException as e:
        if e.status == 404:
            raise ValueError(f"Secret '{secret_name}' not found in namespace '{namespace}'") from e
        raise
    data = secret.data or {}
    if key not in data:
        raise ValueError(f"Key '{key}' not found in secret '{secret_name}'")
    return _decode(data[key])


class CredentialResolver:
    """Extracts credential bytes from the source a ProviderConfig names."""

    def __init__(self, core_api: client.CoreV1Api, request_timeout: float = 30.0) -> None:
        self.core_api = core_api
        self.request_timeout = request_timeout

    def resolve(self, ctx: Context, source: str, selectors: dict[str, Any]) -> bytes:
        """Resolve credentials.

        Args:
            ctx: Cancellation context
            source: One of "Secret", "Environment" or "Filesystem"
            selectors: The ProviderConfig's ``spec.credentials`` block

        Returns:
            Credential bytes

        Raises:
            ValueError: If the source is unsupported or the selector matches nothing
        """
        ctx.check()
        if source == CREDENTIALS_SOURCE_SECRET:
            ref = selectors.get("secretRef") or {}
            name, namespace, key = ref.get("name"), ref.get("namespace"), ref.get("key")
            if not name or not namespace or not key:
                raise ValueError("secretRef requires name, namespace and key")
            return get_secret_value(
                self.core_api, namespace, name, key, request_timeout=ctx.timeout(self.request_timeout)
            )

        if source == CREDENTIALS_SOURCE_ENVIRONMENT:
            env_name = (selectors.get("env") or {}).get("name")
            if not env_name:
                raise ValueError("env.name is required for Environment credentials")
            value = os.environ.get(env_name)
            if value is None:
                raise ValueError(f"Environment variable '{env_name}' is not set")
            return value.encode("utf-8")

        if source == CREDENTIALS_SOURCE_FILESYSTEM:
            path = (selectors.get("fs") or {}).get("path")
            if not path:
                raise ValueError("fs.path is required for Filesystem credentials")
            try:
                with open(path, "rb") as f:
                    return f.read()
            except OSError as e:
                raise ValueError(f"Cannot read credentials file '{path}': {e.strerror}") from e

        raise ValueError(f"Unsupported credentials source: {source}")


class ConnectionPublisher:
    """Writes connection details to the secret a managed resource names."""

    def __init__(self, core_api: client.CoreV1Api, request_timeout: float = 30.0) -> None:
        self.core_api = core_api
        self.request_timeout = request_timeout

    def publish(self, ctx: Context, mg: ManagedResource, details: ConnectionDetails) -> bool:
        """Create or patch the connection secret.

        Returns:
            True if a secret was written, False if there was nothing to write
        """
        ref = mg.connection_secret_ref
        if ref is None or not details:
            return False
        ctx.check()

        name = ref["name"]
        namespace = ref.get("namespace", "default")
        data = {k: base64.b64encode(v).decode("utf-8") for k, v in details.items()}
        owner = {**mg.owner_reference(), "controller": True}
        secret = client.V1Secret(
            metadata=client.V1ObjectMeta(
                name=name,
                namespace=namespace,
                owner_references=[owner],
                labels={LABEL_PROVIDER_CONFIG: mg.provider_config_name},
            ),
            type="connection.crossplane.io/v1alpha1",
            data=data,
        )
        timeout = ctx.timeout(self.request_timeout)

        try:
            rate_limit_k8s(self.core_api.create_namespaced_secret)(
                namespace=namespace,
                body=secret,
                field_manager=FIELD_MANAGER,
                _request_timeout=timeout,
            )
        except client.exceptions.ApiException as e:
            if e.status != 409:
                raise
            rate_limit_k8s(self.core_api.patch_namespaced_secret)(
                name=name,
                namespace=namespace,
                body={"data": data},
                field_manager=FIELD_MANAGER,
                _request_timeout=timeout,
            )

        logger.info(f"Published connection details ({', '.join(sorted(details))}) to secret {namespace}/{name}")
        return True
