"""Managed resource model and the external client contract."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, ClassVar, Protocol

from .constants import (
    ANNOTATION_EXTERNAL_NAME,
    DEFAULT_PROVIDER_CONFIG,
    DELETION_POLICY_DELETE,
    DELETION_POLICY_ORPHAN,
    FINALIZER,
)
from .utils.context import Context
from .utils.errors import TypeMismatchError

ConnectionDetails = dict[str, bytes]


@dataclass
class Observation:
    """Result of comparing the external resource with desired state.

    Attributes:
        exists: Whether the external resource exists
        up_to_date: Whether every field desired state controls matches
        ready: The external system's own readiness signal
        external_name: Identifier discovered while observing; bound to the
            managed resource only if it has none yet
        connection_details: Details to publish (rarely known on observe)
        at_provider: Observed fields written to ``status.atProvider``
        drift: Names of fields that differ from desired state
    """

    exists: bool = False
    up_to_date: bool = False
    ready: bool = False
    external_name: str | None = None
    connection_details: ConnectionDetails = field(default_factory=dict)
    at_provider: dict[str, Any] = field(default_factory=dict)
    drift: list[str] = field(default_factory=list)


@dataclass
class Creation:
    """Outcome of a successful Create."""

    external_name: str | None = None
    connection_details: ConnectionDetails = field(default_factory=dict)
    at_provider: dict[str, Any] = field(default_factory=dict)


@dataclass
class ExternalUpdate:
    """Outcome of a successful Update."""

    connection_details: ConnectionDetails = field(default_factory=dict)


@dataclass
class ReconcileResult:
    """Outcome of a reconcile pass.

    ``backoff`` retries the resource after the delay the shared rate limiter
    prescribes; otherwise its backoff is reset and it waits for the next
    change or poll.
    """

    backoff: bool = False


class ExternalClient(Protocol):
    """Observes, then creates, updates or deletes one kind of external resource."""

    def observe(self, ctx: Context, mg: ManagedResource) -> Observation:
        ...

    def create(self, ctx: Context, mg: ManagedResource) -> Creation:
        ...

    def update(self, ctx: Context, mg: ManagedResource) -> ExternalUpdate:
        ...

    def delete(self, ctx: Context, mg: ManagedResource) -> None:
        ...

    def close(self) -> None:
        """Release connections held by the client."""
        ...


class ExternalConnecter(Protocol):
    """Produces an ExternalClient for a managed resource."""

    def connect(self, ctx: Context, mg: ManagedResource) -> ExternalClient:
        ...


class ManagedResource:
    """Typed view over a cluster-scoped managed resource body.

    Subclasses set ``GROUP``, ``VERSION``, ``KIND`` and ``PLURAL`` and add
    accessors for their ``spec.forProvider`` fields. The engine mutates only
    ``status``, the finalizer list and the external-name annotation.
    """

    GROUP: ClassVar[str] = ""
    VERSION: ClassVar[str] = ""
    KIND: ClassVar[str] = ""
    PLURAL: ClassVar[str] = ""

    def __init__(self, body: dict[str, Any]) -> None:
        kind = body.get("kind")
        if kind is not None and kind != self.KIND:
            raise TypeMismatchError(f"managed resource is not a {self.KIND} custom resource (got {kind})")
        self.body = copy.deepcopy(body)
        self.body.setdefault("metadata", {})
        self.body.setdefault("spec", {})
        self.body.setdefault("status", {})
        self._observed_status = copy.deepcopy(self.body["status"])

    @classmethod
    def api_version(cls) -> str:
        return f"{cls.GROUP}/{cls.VERSION}"

    @property
    def metadata(self) -> dict[str, Any]:
        return self.body["metadata"]

    @property
    def spec(self) -> dict[str, Any]:
        return self.body["spec"]

    @property
    def status(self) -> dict[str, Any]:
        return self.body["status"]

    @property
    def for_provider(self) -> dict[str, Any]:
        return self.spec.get("forProvider", {})

    @property
    def name(self) -> str:
        return self.metadata.get("name", "")

    @property
    def uid(self) -> str:
        return self.metadata.get("uid", "")

    @property
    def generation(self) -> int:
        return self.metadata.get("generation", 0)

    @property
    def deletion_timestamp(self) -> str | None:
        return self.metadata.get("deletionTimestamp")

    @property
    def provider_config_name(self) -> str:
        ref = self.spec.get("providerConfigRef") or {}
        return ref.get("name") or DEFAULT_PROVIDER_CONFIG

    @property
    def deletion_policy(self) -> str:
        return self.spec.get("deletionPolicy") or DELETION_POLICY_DELETE

    @property
    def orphan_on_delete(self) -> bool:
        return self.deletion_policy == DELETION_POLICY_ORPHAN

    @property
    def connection_secret_ref(self) -> dict[str, str] | None:
        ref = self.spec.get("writeConnectionSecretToRef")
        if not ref or not ref.get("name"):
            return None
        return ref

    @property
    def external_name(self) -> str | None:
        return (self.metadata.get("annotations") or {}).get(ANNOTATION_EXTERNAL_NAME) or None

    def set_external_name(self, name: str) -> bool:
        """Bind the external name if none is set yet.

        Returns:
            True if the annotation was written, False if one already existed
        """
        if self.external_name:
            return False
        annotations = self.metadata.get("annotations") or {}
        annotations[ANNOTATION_EXTERNAL_NAME] = name
        self.metadata["annotations"] = annotations
        return True

    @property
    def finalizers(self) -> list[str]:
        return list(self.metadata.get("finalizers") or [])

    def add_finalizer(self) -> bool:
        """Add the engine finalizer; returns True if metadata changed."""
        finalizers = self.finalizers
        if FINALIZER in finalizers:
            return False
        finalizers.append(FINALIZER)
        self.metadata["finalizers"] = finalizers
        return True

    def remove_finalizer(self) -> bool:
        """Remove the engine finalizer; returns True if metadata changed."""
        finalizers = self.finalizers
        if FINALIZER not in finalizers:
            return False
        finalizers.remove(FINALIZER)
        self.metadata["finalizers"] = finalizers
        return True

    @property
    def conditions(self) -> list[dict[str, Any]]:
        return self.status.setdefault("conditions", [])

    def set_at_provider(self, observed: dict[str, Any]) -> None:
        if observed:
            self.status["atProvider"] = {**self.status.get("atProvider", {}), **observed}

    def status_changed(self) -> bool:
        return self.status != self._observed_status

    def refresh_metadata(self, body: dict[str, Any]) -> None:
        """Adopt metadata (resourceVersion included) from a write response."""
        self.body["metadata"] = copy.deepcopy(body.get("metadata", {}))

    def mark_status_persisted(self) -> None:
        self._observed_status = copy.deepcopy(self.status)

    def owner_reference(self) -> dict[str, Any]:
        return {
            "apiVersion": self.api_version(),
            "kind": self.KIND,
            "name": self.name,
            "uid": self.uid,
        }

    def event_body(self) -> dict[str, Any]:
        """Minimal body accepted by the event poster."""
        return {
            "apiVersion": self.api_version(),
            "kind": self.KIND,
            "metadata": {"name": self.name, "uid": self.uid},
        }
