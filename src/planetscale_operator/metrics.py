"""Prometheus metrics for the PlanetScale Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "planetscale_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "planetscale_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

error_total = Counter(
    "planetscale_operator_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

resource_status_total = Counter(
    "planetscale_operator_resource_status_total",
    "Resource readiness observed at the end of a reconciliation",
    ["kind", "status"],
)

# External resource operation metrics
external_operations_total = Counter(
    "planetscale_operator_external_operations_total",
    "Total number of external resource operations",
    ["kind", "operation", "result"],
)

# Configuration drift detection metrics
drift_detected_total = Counter(
    "planetscale_operator_drift_detected_total",
    "Total number of configuration drift detections",
    ["kind", "field"],
)

# API call metrics
api_call_total = Counter(
    "planetscale_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "planetscale_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

rate_limit_hits_total = Counter(
    "planetscale_operator_rate_limit_hits_total",
    "Total number of rate limit hits",
    ["api_type"],
)

reconcile_retries_total = Counter(
    "planetscale_operator_reconcile_retries_total",
    "Total number of reconciliations retried with backoff",
    ["kind"],
)
