"""Main entry point for the PlanetScale Operator.

Run with ``kopf run --all-namespaces -m planetscale_operator.main``.
"""

from __future__ import annotations

import functools
import logging
import threading
from typing import Any

import kopf

from . import handlers  # noqa: F401
from . import logging as structured_logging
from . import metrics
from .backoff import RateLimiter, default_rate_limiter
from .builders.service import create_service_from_credentials
from .config import OperatorConfig
from .constants import (
    BRANCH_GROUP_VERSION,
    DATABASE_GROUP_VERSION,
    KIND_DATABASE,
    KIND_PASSWORD,
)
from .handlers.base import ManagedReconciler
from .handlers.database import DatabaseClient, DatabaseResource
from .handlers.password import PasswordClient, PasswordResource
from .handlers.shared import Connector, ExternalFactory, ProviderConfigUsageTracker
from .health import start_metrics_server
from .managed import ManagedResource, ReconcileResult
from .store import KubernetesResourceStore, get_core_client, get_k8s_client
from .tracing import initialize_tracing
from .utils.context import Context
from .utils.errors import sanitize_exception
from .utils.secrets import ConnectionPublisher, CredentialResolver

logger = logging.getLogger(__name__)

# Timer intervals are fixed when the handlers below are registered
CONFIG = OperatorConfig.from_env()

_reconcilers: dict[str, ManagedReconciler] = {}
_rate_limiter: RateLimiter = default_rate_limiter()
_root = Context.background()


def build_reconciler(
    config: OperatorConfig,
    resource_cls: type[ManagedResource],
    new_external: ExternalFactory,
) -> ManagedReconciler:
    """Wire store, connector and publisher for one managed kind."""
    kube = get_k8s_client()
    core = get_core_client()
    timeout = config.api_timeout_seconds

    store = KubernetesResourceStore(
        kube, resource_cls.GROUP, resource_cls.VERSION, resource_cls.PLURAL, request_timeout=timeout
    )
    connector = Connector(
        kube,
        ProviderConfigUsageTracker(kube, request_timeout=timeout),
        CredentialResolver(core, request_timeout=timeout),
        functools.partial(create_service_from_credentials, base_url=config.api_url, timeout=timeout),
        new_external,
        request_timeout=timeout,
    )
    return ManagedReconciler(
        resource_cls,
        store,
        connector,
        publisher=ConnectionPublisher(core, request_timeout=timeout),
    )


def reconcilers_ready() -> bool:
    return bool(_reconcilers) and not _root.cancelled


def reconcile_resource(kind: str, name: str, memo: kopf.Memo) -> None:
    """Run one reconcile pass for a managed resource.

    Passes for the same object never overlap. Backoff is shared by every kind,
    so the combined retry rate against PlanetScale stays bounded.

    Raises:
        kopf.TemporaryError: When the pass did not converge; kopf retries the
            handler after the delay the shared limiter prescribes
    """
    reconciler = _reconcilers.get(kind)
    if reconciler is None:
        raise kopf.TemporaryError(f"{kind} reconciler is not configured", delay=CONFIG.backoff_base_seconds)

    key = (kind, name)
    # Change handlers and the poll timer may fire together for one object
    with memo.setdefault("reconcile_lock", threading.Lock()):
        ctx = _root.with_timeout(CONFIG.reconcile_timeout_seconds)
        try:
            result = reconciler.reconcile(ctx, name)
        except Exception as e:
            metrics.error_total.labels(kind=kind, error_type=type(e).__name__).inc()
            logger.error(f"Reconciling {kind} {name} failed: {sanitize_exception(e)}")
            result = ReconcileResult(backoff=True)

    if result.backoff:
        delay = _rate_limiter.when(key)
        metrics.reconcile_retries_total.labels(kind=kind).inc()
        raise kopf.TemporaryError(f"{kind} {name} has not converged; retrying in {delay:.1f}s", delay=delay)
    _rate_limiter.forget(key)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator and build the managed resource reconcilers."""
    global _rate_limiter, _root

    # Set up structured JSON logging
    structured_logging.setup_structured_logging()
    initialize_tracing()

    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()
    settings.posting.level = logging.INFO
    settings.networking.request_timeout = CONFIG.api_timeout_seconds
    settings.execution.max_workers = CONFIG.max_workers

    start_metrics_server(CONFIG.metrics_port, ready_check=reconcilers_ready)

    _root = Context.background()
    # One limiter for every kind so the combined retry rate stays bounded
    _rate_limiter = default_rate_limiter(
        base_delay=CONFIG.backoff_base_seconds,
        max_delay=CONFIG.backoff_max_seconds,
        jitter=CONFIG.backoff_jitter,
        rate=CONFIG.global_rate_limit_per_second,
    )
    _reconcilers[KIND_DATABASE] = build_reconciler(CONFIG, DatabaseResource, DatabaseClient)
    _reconcilers[KIND_PASSWORD] = build_reconciler(CONFIG, PasswordResource, PasswordClient)
    logger.info(f"PlanetScale operator started with reconcilers: {', '.join(_reconcilers)}")


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Cancel in-flight reconciliations."""
    _root.cancel()
    _reconcilers.clear()


@kopf.on.resume(DATABASE_GROUP_VERSION, KIND_DATABASE)
@kopf.on.create(DATABASE_GROUP_VERSION, KIND_DATABASE)
@kopf.on.update(DATABASE_GROUP_VERSION, KIND_DATABASE)
@kopf.on.delete(DATABASE_GROUP_VERSION, KIND_DATABASE, optional=True)
@kopf.timer(DATABASE_GROUP_VERSION, KIND_DATABASE, interval=CONFIG.poll_interval_seconds)
def handle_database(name: str, memo: kopf.Memo, **_: Any) -> None:
    """Reconcile a Database on change, on deletion and on every poll."""
    reconcile_resource(KIND_DATABASE, name, memo)


@kopf.on.resume(BRANCH_GROUP_VERSION, KIND_PASSWORD)
@kopf.on.create(BRANCH_GROUP_VERSION, KIND_PASSWORD)
@kopf.on.update(BRANCH_GROUP_VERSION, KIND_PASSWORD)
@kopf.on.delete(BRANCH_GROUP_VERSION, KIND_PASSWORD, optional=True)
@kopf.timer(BRANCH_GROUP_VERSION, KIND_PASSWORD, interval=CONFIG.poll_interval_seconds)
def handle_password(name: str, memo: kopf.Memo, **_: Any) -> None:
    """Reconcile a Password on change, on deletion and on every poll."""
    reconcile_resource(KIND_PASSWORD, name, memo)
