"""
Prometheus Metrics for Observability

Tracks provider calls, enhancement polling, and batch outcomes.
Exposes /metrics endpoint for Prometheus scraping.
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY
)

# =============================================================================
# Metrics Definitions
# =============================================================================

# Vmake API Calls
provider_api_calls_total = Counter(
    "vmake_api_calls_total",
    "Total number of Vmake API calls",
    labelnames=["endpoint", "status", "http_status"]
)

provider_latency_seconds = Histogram(
    "vmake_api_latency_seconds",
    "Time spent waiting on the Vmake API",
    labelnames=["endpoint", "status"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

# Enhancement polling
enhancement_polls_total = Counter(
    "enhancement_polls_total",
    "Total number of enhancement status polls by observed status",
    labelnames=["status"]
)

# Batch outcomes
batch_slots_total = Counter(
    "batch_slots_total",
    "Slots handled by the batch orchestrator",
    labelnames=["mode", "outcome"]
)

slot_processing_seconds = Histogram(
    "slot_processing_seconds",
    "Wall time from submission to result for one slot",
    labelnames=["mode", "outcome"],
    buckets=[1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0]
)

# API Request Metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration",
    labelnames=["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Application Info
app_info = Info(
    "imagestudio_app",
    "Application information"
)


# =============================================================================
# Helper Functions
# =============================================================================

def set_app_info(version: str, environment: str):
    """Set application info metric."""
    app_info.info({
        "version": version,
        "environment": environment
    })


@contextmanager
def track_provider_latency(endpoint: str):
    """
    Context manager to track a Vmake call.

    Usage:
        with track_provider_latency("quality_enhance"):
            response = await client.post(...)
    """
    start = time.time()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        duration = time.time() - start
        provider_latency_seconds.labels(endpoint=endpoint, status=status).observe(duration)


def record_provider_call(endpoint: str, status: str, http_status: int = 200):
    """Record a Vmake API call."""
    provider_api_calls_total.labels(
        endpoint=endpoint,
        status=status,
        http_status=str(http_status)
    ).inc()


def record_poll(status: str):
    """Record one enhancement status poll."""
    enhancement_polls_total.labels(status=status).inc()


def record_slot_outcome(mode: str, outcome: str, duration_seconds: float):
    """Record the outcome of one slot in a batch run."""
    batch_slots_total.labels(mode=mode, outcome=outcome).inc()
    slot_processing_seconds.labels(mode=mode, outcome=outcome).observe(duration_seconds)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
