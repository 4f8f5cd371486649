"""
Prometheus metrics for the SCM bridge.

This module defines the metrics collected while normalizing Bitbucket webhooks,
calling the Bitbucket API and posting commit statuses.
"""

from prometheus_client import Counter, Histogram, Gauge
import time


# Webhook normalization metrics
webhooks_received_total = Counter(
    "scm_bridge_webhooks_received_total",
    "Total number of webhooks classified",
    ["category", "outcome"],  # category = repo|pullrequest|unknown
)

# Bitbucket API interaction metrics
api_calls_total = Counter(
    "scm_bridge_api_calls_total",
    "Total number of Bitbucket API calls",
    ["endpoint", "method", "status_code"],
)

api_call_duration_seconds = Histogram(
    "scm_bridge_api_call_duration_seconds",
    "Duration of Bitbucket API calls",
    ["endpoint", "method"],
)

api_call_errors_total = Counter(
    "scm_bridge_api_call_errors_total",
    "Total number of Bitbucket API calls that failed at the transport level",
    ["endpoint", "method", "error_type"],
)

# Commit status metrics
commit_status_updates_total = Counter(
    "scm_bridge_commit_status_updates_total",
    "Total number of commit statuses posted to Bitbucket",
    ["state"],  # state = SUCCESSFUL|INPROGRESS|FAILED|STOPPED
)

# Circuit breaker
breaker_open = Gauge(
    "scm_bridge_breaker_open",
    "Circuit breaker state (1 = open, 0 = closed)",
)


class MetricsContext:
    """Context manager for timing operations and handling errors with metrics."""

    def __init__(self, histogram, error_counter, labels=None, error_labels=None):
        self.histogram = histogram
        self.error_counter = error_counter
        self.labels = labels or []
        self.error_labels = error_labels or []
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            duration = time.time() - self.start_time
            self.histogram.labels(*self.labels).observe(duration)

        if exc_type is not None:
            error_type = exc_type.__name__
            self.error_counter.labels(*self.error_labels, error_type).inc()

        return False  # Don't suppress exceptions


def track_api_call(endpoint: str, method: str):
    """Context manager for tracking Bitbucket API call metrics."""
    return MetricsContext(
        api_call_duration_seconds,
        api_call_errors_total,
        labels=[endpoint, method],
        error_labels=[endpoint, method],
    )
