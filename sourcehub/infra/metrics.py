"""Prometheus metrics export."""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Request metrics
request_count = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

request_duration = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
)

# Provisioning metrics
provisioning_outcomes_total = Counter(
    "managed_data_source_provisioning_total",
    "Managed data source provisioning runs by terminal state",
    ["provider_kind", "state", "error_kind"],  # error_kind is "none" on success
)

provisioning_step_failures_total = Counter(
    "managed_data_source_step_failures_total",
    "Provisioning failures attributed to a step",
    ["step"],
)

provisioning_step_duration = Histogram(
    "managed_data_source_step_duration_seconds",
    "Duration of each provisioning step in seconds",
    ["state"],
)

# Upstream service calls
upstream_calls_total = Counter(
    "upstream_calls_total",
    "Calls to the core and connectors APIs",
    ["service", "operation", "status"],
)


def get_metrics_response() -> Response:
    """Get Prometheus metrics as HTTP response."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
