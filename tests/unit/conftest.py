"""Shared fixtures and in-memory fakes for unit tests."""

from __future__ import annotations

import copy
import itertools
from typing import Any
from unittest.mock import Mock

import pytest

from planetscale_operator.constants import ANNOTATION_EXTERNAL_NAME, DATABASE_GROUP_VERSION
from planetscale_operator.managed import (
    Creation,
    ExternalUpdate,
    ManagedResource,
    Observation,
)
from planetscale_operator.store import ConflictError
from planetscale_operator.utils import rate_limit
from planetscale_operator.utils.context import Context
from planetscale_operator.utils.errors import STAGE_GET_PROVIDER_CONFIG, ConnectError


@pytest.fixture(autouse=True)
def fast_rate_limits(monkeypatch):
    """Keep client-side throttling out of the way of unit tests."""
    monkeypatch.setattr(rate_limit, "_K8S_RATE_LIMIT_PER_SECOND", 100000.0)
    monkeypatch.setattr(rate_limit, "_PLANETSCALE_RATE_LIMIT_PER_SECOND", 100000.0)


class FakeResourceStore:
    """In-memory store with resourceVersion conflict checks.

    Mirrors the API server: writes with a stale resourceVersion are rejected,
    ``update`` ignores status and ``update_status`` ignores everything else,
    and an object being deleted disappears once its last finalizer is gone.
    """

    def __init__(self, *bodies: dict[str, Any]) -> None:
        self.objects: dict[str, dict[str, Any]] = {}
        self._versions = itertools.count(1)
        self.writes: list[str] = []
        self.conflicts_pending = 0
        for body in bodies:
            self.put(body)

    def put(self, body: dict[str, Any]) -> None:
        body = copy.deepcopy(body)
        body.setdefault("metadata", {})["resourceVersion"] = str(next(self._versions))
        self.objects[body["metadata"]["name"]] = body

    def touch(self, name: str) -> None:
        """Simulate a concurrent writer bumping the resourceVersion."""
        self.objects[name]["metadata"]["resourceVersion"] = str(next(self._versions))

    def _check(self, body: dict[str, Any]) -> dict[str, Any]:
        name = body["metadata"]["name"]
        if self.conflicts_pending:
            self.conflicts_pending -= 1
            raise ConflictError(f"{name} was modified concurrently")
        current = self.objects.get(name)
        if current is None:
            raise ConflictError(f"{name} no longer exists")
        if body["metadata"].get("resourceVersion") != current["metadata"]["resourceVersion"]:
            raise ConflictError(f"{name} was modified concurrently")
        return current

    def get(self, ctx: Context, name: str) -> dict[str, Any] | None:
        body = self.objects.get(name)
        return copy.deepcopy(body) if body is not None else None

    def update(self, ctx: Context, body: dict[str, Any]) -> dict[str, Any]:
        current = self._check(body)
        name = body["metadata"]["name"]
        self.writes.append("update")
        current["metadata"] = copy.deepcopy(body["metadata"])
        current["metadata"]["resourceVersion"] = str(next(self._versions))
        current["spec"] = copy.deepcopy(body.get("spec", {}))
        if current["metadata"].get("deletionTimestamp") and not current["metadata"].get("finalizers"):
            del self.objects[name]
        return copy.deepcopy(current)

    def update_status(self, ctx: Context, body: dict[str, Any]) -> dict[str, Any]:
        current = self._check(body)
        self.writes.append("update_status")
        current["status"] = copy.deepcopy(body.get("status", {}))
        current["metadata"]["resourceVersion"] = str(next(self._versions))
        return copy.deepcopy(current)


class FakeExternalSystem:
    """Records held by a fake provider, keyed by external name."""

    def __init__(self) -> None:
        self.records: dict[str, dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self.ready = True
        self.up_to_date = True
        self.drift: list[str] = []
        self.observe_error: Exception | None = None
        self.create_error: Exception | None = None
        self.update_error: Exception | None = None
        self.delete_error: Exception | None = None
        self.created_id: str | None = None
        self.calls: list[str] = []

    def next_id(self) -> str:
        return f"db-{next(self._ids)}"


class FakeExternalClient:
    """External client backed by a FakeExternalSystem."""

    def __init__(self, system: FakeExternalSystem) -> None:
        self.system = system
        self.closed = False

    def observe(self, ctx: Context, mg: ManagedResource) -> Observation:
        self.system.calls.append("observe")
        if self.system.observe_error is not None:
            raise self.system.observe_error
        external_name = mg.external_name
        if not external_name:
            # Unbound records are found by resource name
            external_name = next(
                (key for key, record in self.system.records.items() if record.get("name") == mg.name), None
            )
        if external_name is None or external_name not in self.system.records:
            return Observation(exists=False)
        return Observation(
            exists=True,
            up_to_date=self.system.up_to_date,
            ready=self.system.ready,
            external_name=external_name,
            at_provider={"id": external_name},
            drift=list(self.system.drift),
        )

    def create(self, ctx: Context, mg: ManagedResource) -> Creation:
        self.system.calls.append("create")
        if self.system.create_error is not None:
            raise self.system.create_error
        external_name = self.system.created_id or mg.external_name or self.system.next_id()
        self.system.records[external_name] = {"name": mg.name}
        return Creation(
            external_name=external_name,
            connection_details={"endpoint": f"{external_name}.example.com".encode()},
            at_provider={"id": external_name},
        )

    def update(self, ctx: Context, mg: ManagedResource) -> ExternalUpdate:
        self.system.calls.append("update")
        if self.system.update_error is not None:
            raise self.system.update_error
        return ExternalUpdate()

    def delete(self, ctx: Context, mg: ManagedResource) -> None:
        self.system.calls.append("delete")
        if self.system.delete_error is not None:
            raise self.system.delete_error
        self.system.records.pop(mg.external_name or "", None)

    def close(self) -> None:
        self.closed = True


class FakeConnecter:
    """Hands out FakeExternalClients, or fails like a missing ProviderConfig."""

    def __init__(self, system: FakeExternalSystem) -> None:
        self.system = system
        self.error: Exception | None = None
        self.clients: list[FakeExternalClient] = []

    def connect(self, ctx: Context, mg: ManagedResource) -> FakeExternalClient:
        if self.error is not None:
            raise ConnectError(STAGE_GET_PROVIDER_CONFIG, self.error)
        client = FakeExternalClient(self.system)
        self.clients.append(client)
        return client


def make_database_body(
    name: str = "example",
    external_name: str | None = None,
    finalizers: list[str] | None = None,
    deleting: bool = False,
    deletion_policy: str | None = None,
    **for_provider: Any,
) -> dict[str, Any]:
    """Build a Database object as the API server would return it."""
    metadata: dict[str, Any] = {"name": name, "uid": f"uid-{name}", "generation": 1}
    if external_name is not None:
        metadata["annotations"] = {ANNOTATION_EXTERNAL_NAME: external_name}
    if finalizers is not None:
        metadata["finalizers"] = finalizers
    if deleting:
        metadata["deletionTimestamp"] = "2024-01-01T00:00:00Z"
    spec: dict[str, Any] = {
        "forProvider": {"organization": "acme", **for_provider},
        "providerConfigRef": {"name": "default"},
        "writeConnectionSecretToRef": {"name": f"{name}-conn", "namespace": "crossplane-system"},
    }
    if deletion_policy is not None:
        spec["deletionPolicy"] = deletion_policy
    return {
        "apiVersion": DATABASE_GROUP_VERSION,
        "kind": "Database",
        "metadata": metadata,
        "spec": spec,
    }


@pytest.fixture
def ctx():
    return Context.background()


@pytest.fixture
def system():
    return FakeExternalSystem()


@pytest.fixture
def connecter(system):
    return FakeConnecter(system)


@pytest.fixture
def recorder():
    return Mock()


@pytest.fixture
def publisher():
    return Mock()

