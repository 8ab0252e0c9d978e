"""Generic managed resource reconciler shared by every kind."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Generic, TypeVar

from .. import metrics
from ..constants import CONTROLLER_NAME, FINALIZER
from ..logging import log_resource_event
from ..managed import ConnectionDetails, ExternalClient, ExternalConnecter, ManagedResource, Observation, ReconcileResult
from ..store import ConflictError, ResourceStore
from ..tracing import add_span_attribute, trace_span
from ..utils import events
from ..utils.conditions import (
    set_available_condition,
    set_creating_condition,
    set_deleting_condition,
    set_synced_condition,
    set_unavailable_condition,
)
from ..utils.context import Context, with_correlation_id
from ..utils.errors import (
    CreateError,
    DeleteError,
    ObserveError,
    ReconcileError,
    TypeMismatchError,
    UpdateError,
    sanitize_exception,
)
from ..utils.secrets import ConnectionPublisher

MR = TypeVar("MR", bound=ManagedResource)


class Recorder:
    """Posts Kubernetes events for a managed resource."""

    def created(self, mg: ManagedResource, external_name: str) -> None:
        events.emit_created(mg.event_body(), external_name)

    def deleted(self, mg: ManagedResource) -> None:
        events.emit_deleted(mg.event_body())

    def failed(self, mg: ManagedResource, reason: str, message: str) -> None:
        events.emit_reconcile_failed(mg.event_body(), reason, message)


class ManagedReconciler(Generic[MR]):
    """Drives one managed kind towards its desired state.

    Each pass re-derives the external state through Observe, then creates,
    updates or deletes as needed and records the outcome on the Ready and
    Synced conditions. The only state kept between passes is connection
    details that could not be published yet, so an interrupted pass is safe
    to repeat.
    """

    def __init__(
        self,
        resource_cls: type[MR],
        store: ResourceStore,
        connecter: ExternalConnecter,
        publisher: ConnectionPublisher | None = None,
        recorder: Recorder | None = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            resource_cls: Managed resource class this reconciler handles
            store: Desired-state store for ``resource_cls`` objects
            connecter: Produces external clients
            publisher: Writes connection details; None disables publishing
            recorder: Posts events; defaults to Kubernetes events
        """
        self.resource_cls = resource_cls
        self.kind = resource_cls.KIND
        self.store = store
        self.connecter = connecter
        self.publisher = publisher
        self.recorder = recorder or Recorder()
        self._unpublished: dict[str, ConnectionDetails] = {}
        self.logger = logging.getLogger(__name__)

    def _log(
        self,
        level: int,
        name: str,
        uid: str,
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=name,
            uid=uid,
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_info(self, mg: ManagedResource, message: str, event: str = "info", reason: str = "Info", **kwargs: Any) -> None:
        self._log(logging.INFO, mg.name, mg.uid, message, event, reason, **kwargs)

    def log_error(
        self,
        mg: ManagedResource,
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            mg: Managed resource
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        if error is not None:
            kwargs["error"] = sanitize_exception(error)
            kwargs["error_type"] = type(error.__cause__ or error).__name__
        self._log(logging.ERROR, mg.name, mg.uid, message, event, reason, **kwargs)

    def reconcile(self, ctx: Context, name: str) -> ReconcileResult:
        """Run one reconciliation pass for the named resource."""
        with with_correlation_id(uuid.uuid4().hex):
            with trace_span(f"reconcile_{self.kind.lower()}", kind=self.kind, attributes={"resource.name": name}):
                return self._reconcile_with_metrics(ctx, name)

    def _reconcile_with_metrics(self, ctx: Context, name: str) -> ReconcileResult:
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()
        start_time = time.time()
        try:
            result = self._reconcile(ctx, name)
            metrics.reconcile_total.labels(kind=self.kind, result="error" if result.backoff else "success").inc()
            return result
        except ConflictError as e:
            # The object changed under us; start over from a fresh read
            self.logger.debug(f"{self.kind} {name}: {e}")
            metrics.reconcile_total.labels(kind=self.kind, result="conflict").inc()
            return ReconcileResult(backoff=True)
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(duration)

    def _reconcile(self, ctx: Context, name: str) -> ReconcileResult:
        body = self.store.get(ctx, name)
        if body is None:
            # Already deleted
            return ReconcileResult()

        try:
            mg = self.resource_cls(body)
        except TypeMismatchError as e:
            metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
            self.logger.error(f"Refusing to reconcile {name}: {e}")
            return ReconcileResult(backoff=True)

        if mg.deletion_timestamp:
            return self._reconcile_delete(ctx, mg)

        if mg.add_finalizer():
            mg.refresh_metadata(self.store.update(ctx, mg.body))

        try:
            external = self.connecter.connect(ctx, mg)
        except ReconcileError as e:
            return self._record_failure(ctx, mg, e)

        try:
            return self._reconcile_external(ctx, mg, external)
        finally:
            external.close()

    def _reconcile_external(self, ctx: Context, mg: MR, external: ExternalClient) -> ReconcileResult:
        try:
            with trace_span("observe", kind=self.kind):
                observation = external.observe(ctx, mg)
        except Exception as e:
            return self._record_failure(ctx, mg, ObserveError("cannot observe external resource", e))

        add_span_attribute("external.exists", observation.exists)
        self._apply_observation(ctx, mg, observation)

        if not observation.exists:
            return self._create(ctx, mg, external)

        pending = self._unpublished.get(mg.uid)
        if pending:
            try:
                self._publish(ctx, mg, pending)
            except Exception as e:
                return self._record_failure(ctx, mg, CreateError("cannot publish connection details", e))
            del self._unpublished[mg.uid]

        if not observation.up_to_date:
            try:
                with trace_span("update", kind=self.kind):
                    update = external.update(ctx, mg)
            except Exception as e:
                metrics.external_operations_total.labels(kind=self.kind, operation="update", result="error").inc()
                return self._record_failure(ctx, mg, UpdateError("cannot update external resource", e))
            metrics.external_operations_total.labels(kind=self.kind, operation="update", result="success").inc()
            try:
                self._publish(ctx, mg, update.connection_details)
            except Exception as e:
                return self._record_failure(ctx, mg, UpdateError("cannot publish connection details", e))

        message = ""
        if observation.drift:
            for field_name in observation.drift:
                metrics.drift_detected_total.labels(kind=self.kind, field=field_name).inc()
            message = (
                "External resource differs from desired state in fields that cannot be updated: "
                + ", ".join(observation.drift)
            )
            self.log_info(mg, message, event="drift", reason="DriftDetected", fields=observation.drift)

        set_synced_condition(mg.conditions, True, message=message, observed_generation=mg.generation)
        if observation.ready:
            set_available_condition(mg.conditions, observed_generation=mg.generation)
        else:
            set_unavailable_condition(mg.conditions, observed_generation=mg.generation)
        metrics.resource_status_total.labels(kind=self.kind, status="ready" if observation.ready else "not_ready").inc()
        self._write_status(ctx, mg)
        return ReconcileResult()

    def _apply_observation(self, ctx: Context, mg: MR, observation: Observation) -> None:
        mg.set_at_provider(observation.at_provider)
        if observation.exists and observation.external_name and mg.set_external_name(observation.external_name):
            # Late binding of an identifier found by the fallback lookup
            mg.refresh_metadata(self.store.update(ctx, mg.body))
            self.log_info(mg, f"Bound external name {observation.external_name}", reason="ExternalNameBound")

    def _create(self, ctx: Context, mg: MR, external: ExternalClient) -> ReconcileResult:
        try:
            with trace_span("create", kind=self.kind):
                creation = external.create(ctx, mg)
        except ReconcileError as e:
            metrics.external_operations_total.labels(kind=self.kind, operation="create", result="error").inc()
            return self._record_failure(ctx, mg, e)
        except Exception as e:
            metrics.external_operations_total.labels(kind=self.kind, operation="create", result="error").inc()
            return self._record_failure(ctx, mg, CreateError("cannot create external resource", e))
        metrics.external_operations_total.labels(kind=self.kind, operation="create", result="success").inc()

        # Generated secrets are returned only once
        try:
            self._publish(ctx, mg, creation.connection_details)
        except Exception as e:
            self._unpublished[mg.uid] = creation.connection_details
            return self._record_failure(ctx, mg, CreateError("cannot publish connection details", e))

        if creation.external_name and mg.set_external_name(creation.external_name):
            try:
                mg.refresh_metadata(self.store.update(ctx, mg.body))
            except Exception as e:
                return self._record_failure(ctx, mg, CreateError("cannot record external name", e))
        elif creation.external_name and creation.external_name != mg.external_name:
            self.log_error(
                mg,
                f"Create returned {creation.external_name} but external name {mg.external_name} is already bound",
                reason="ExternalNameMismatch",
            )

        mg.set_at_provider(creation.at_provider)

        self.recorder.created(mg, mg.external_name or "")
        self.log_info(mg, "Created external resource", event="create", reason="Created", external_name=mg.external_name)
        set_synced_condition(mg.conditions, True, observed_generation=mg.generation)
        set_creating_condition(mg.conditions, observed_generation=mg.generation)
        metrics.resource_status_total.labels(kind=self.kind, status="not_ready").inc()
        self._write_status(ctx, mg)
        return ReconcileResult()

    def _reconcile_delete(self, ctx: Context, mg: MR) -> ReconcileResult:
        if FINALIZER not in mg.finalizers:
            # Not ours to hold; nothing to clean up
            return ReconcileResult()

        if mg.orphan_on_delete:
            self.log_info(mg, "Orphaning external resource", event="deletion", reason="Orphaned")
        else:
            set_deleting_condition(mg.conditions, observed_generation=mg.generation)
            try:
                external = self.connecter.connect(ctx, mg)
            except ReconcileError as e:
                return self._record_failure(ctx, mg, e)

            try:
                with trace_span("delete", kind=self.kind):
                    external.delete(ctx, mg)
            except Exception as e:
                metrics.external_operations_total.labels(kind=self.kind, operation="delete", result="error").inc()
                return self._record_failure(ctx, mg, DeleteError("cannot delete external resource", e))
            finally:
                external.close()

            metrics.external_operations_total.labels(kind=self.kind, operation="delete", result="success").inc()
            self.recorder.deleted(mg)
            self.log_info(mg, "Deleted external resource", event="deletion", reason="Deleted")

        mg.remove_finalizer()
        self.store.update(ctx, mg.body)
        self._unpublished.pop(mg.uid, None)
        return ReconcileResult()

    def _publish(self, ctx: Context, mg: MR, details: dict[str, bytes]) -> None:
        if self.publisher is not None and details:
            self.publisher.publish(ctx, mg, details)

    def _record_failure(self, ctx: Context, mg: MR, error: ReconcileError) -> ReconcileResult:
        """Record a failed stage on the Synced condition and request backoff."""
        message = str(error)
        metrics.error_total.labels(kind=self.kind, error_type=type(error).__name__).inc()
        self.log_error(mg, message, error=error, reason=error.reason)
        self.recorder.failed(mg, error.reason, message)
        set_synced_condition(mg.conditions, False, error.reason, message, observed_generation=mg.generation)
        self._write_status(ctx, mg)
        return ReconcileResult(backoff=True)

    def _write_status(self, ctx: Context, mg: MR) -> None:
        if not mg.status_changed():
            return
        mg.refresh_metadata(self.store.update_status(ctx, mg.body))
        mg.mark_status_persisted()
