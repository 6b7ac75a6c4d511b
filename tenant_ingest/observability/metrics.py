"""
Prometheus metrics for tenant-ingest.

Metrics live in a private registry (not the process default) and are
exposed by the HTTP trigger at GET /metrics or, for CLI runs, by
start_metrics_server.
"""
import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


REGISTRY = CollectorRegistry()


# =======================
# BATCH METRICS
# =======================

batches_processed_total = Counter(
    name="ingest_batches_processed_total",
    documentation="Batches processed, by final status",
    labelnames=["status"],  # succeeded, failed
    registry=REGISTRY,
)

batch_duration_seconds = Histogram(
    name="ingest_batch_duration_seconds",
    documentation="Wall-clock time of one batch run",
    buckets=[1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0],
    registry=REGISTRY,
)

batch_size_records = Histogram(
    name="ingest_batch_size_records",
    documentation="Input records per batch",
    buckets=[1, 10, 100, 500, 1000, 5000, 10000, 50000],
    registry=REGISTRY,
)

last_successful_batch_timestamp = Gauge(
    name="ingest_last_successful_batch_timestamp_seconds",
    documentation="Unix time at which the last fully successful batch finished",
    registry=REGISTRY,
)

# =======================
# TENANT METRICS
# =======================

tenants_processed_total = Counter(
    name="ingest_tenants_processed_total",
    documentation="Tenant runs, by outcome",
    labelnames=["status"],  # succeeded, failed
    registry=REGISTRY,
)

staged_documents_total = Counter(
    name="ingest_staged_documents_total",
    documentation="Documents written to staging files",
    registry=REGISTRY,
)

provisioned_resources_total = Counter(
    name="ingest_provisioned_resources_total",
    documentation="Indexing-service resources, by kind and whether they were created or reused",
    labelnames=["kind", "outcome"],  # index|search_app, created|reused
    registry=REGISTRY,
)

# =======================
# REMOTE CALL METRICS
# =======================

remote_call_duration_seconds = Histogram(
    name="ingest_remote_call_duration_seconds",
    documentation="Latency of calls to the indexing service and object store",
    labelnames=["operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)

remote_call_failures_total = Counter(
    name="ingest_remote_call_failures_total",
    documentation="Remote calls that failed in transport or returned a non-success status",
    labelnames=["operation"],
    registry=REGISTRY,
)


# =======================
# EXPOSITION
# =======================

def render_metrics() -> tuple[bytes, str]:
    """Current metrics in Prometheus text format, with their content type."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


def start_metrics_server(port: int) -> None:
    """Serve the registry on ``port`` from a background thread."""
    # Lazy import: avoids binding a port on import
    from prometheus_client import start_http_server

    start_http_server(port, registry=REGISTRY)


# =======================
# RECORDING HELPERS
# =======================

@contextmanager
def time_remote_call(operation: str) -> Iterator[None]:
    """
    Observe the latency of one remote call; a transport exception also
    counts as a failure.

    Usage:
        with time_remote_call("create_index"):
            response = http.post(...)
    """
    started = time.perf_counter()
    try:
        yield
    except Exception:
        record_remote_failure(operation)
        raise
    finally:
        remote_call_duration_seconds.labels(operation=operation).observe(time.perf_counter() - started)


def record_remote_failure(operation: str) -> None:
    remote_call_failures_total.labels(operation=operation).inc()


def record_staged_documents(count: int) -> None:
    staged_documents_total.inc(count)


def record_provisioned(kind: str, reused: bool) -> None:
    provisioned_resources_total.labels(kind=kind, outcome="reused" if reused else "created").inc()


def record_batch_processing(
    total_records: int,
    tenants_succeeded: int,
    tenants_failed: int,
    duration_seconds: float,
    success: bool,
) -> None:
    """
    Record the outcome of one batch run.

    Args:
        total_records: Input records read for the batch
        tenants_succeeded: Tenants whose run completed
        tenants_failed: Tenants whose run failed
        duration_seconds: Processing duration in seconds
        success: Whether the batch as a whole succeeded
    """
    tenants_processed_total.labels(status="succeeded").inc(tenants_succeeded)
    tenants_processed_total.labels(status="failed").inc(tenants_failed)
    batch_size_records.observe(total_records)
    batch_duration_seconds.observe(duration_seconds)
    batches_processed_total.labels(status="succeeded" if success else "failed").inc()
    if success:
        last_successful_batch_timestamp.set_to_current_time()
