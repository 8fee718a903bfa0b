"""
Prometheus metrics collection for framepipe

Job runs report through a MetricsListener registered on the engine, so
components never touch metrics directly.
"""
import os
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram

from framepipe.context.listener import ContextListener

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# FRAME METRICS
# =======================

frames_read_total = Counter(
    name="framepipe_frames_read_total",
    documentation="Total number of frames read",
    labelnames=["job_name"],
    registry=REGISTRY,
)

frames_rejected_total = Counter(
    name="framepipe_frames_rejected_total",
    documentation="Total number of frames dropped by a reject filter",
    labelnames=["job_name", "component"],
    registry=REGISTRY,
)

frames_written_total = Counter(
    name="framepipe_frames_written_total",
    documentation="Total number of frames handed to a writer",
    labelnames=["job_name", "component"],
    registry=REGISTRY,
)

frames_failed_total = Counter(
    name="framepipe_frames_failed_total",
    documentation="Total number of stage errors",
    labelnames=["job_name", "component"],
    registry=REGISTRY,
)

validation_failures_total = Counter(
    name="framepipe_validation_failures_total",
    documentation="Total number of validation failures",
    labelnames=["job_name", "component"],
    registry=REGISTRY,
)

# =======================
# JOB METRICS
# =======================

job_runs_total = Counter(
    name="framepipe_job_runs_total",
    documentation="Total number of finished job runs",
    labelnames=["job_name", "status"],  # status: completed, aborted
    registry=REGISTRY,
)

job_duration_seconds = Histogram(
    name="framepipe_job_duration_seconds",
    documentation="Wall-clock duration of job runs in seconds",
    labelnames=["job_name"],
    buckets=[0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0, 900.0, 3600.0],
    registry=REGISTRY,
)


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Only bind a port when the endpoint is actually requested
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


def _component(source) -> str:
    return getattr(source, "name", None) or type(source).__name__


class MetricsListener(ContextListener):
    """
    Context listener translating run events into Prometheus samples.
    """

    def on_read(self, txn) -> None:
        frames_read_total.labels(job_name=txn.parent.name).inc()

    def on_filtered(self, txn, source) -> None:
        frames_rejected_total.labels(job_name=txn.parent.name, component=_component(source)).inc()

    def on_write(self, txn, source) -> None:
        frames_written_total.labels(job_name=txn.parent.name, component=_component(source)).inc()

    def on_error(self, context, source, message) -> None:
        frames_failed_total.labels(job_name=context.name, component=_component(source)).inc()

    def on_validation_failed(self, context, source, message) -> None:
        validation_failures_total.labels(job_name=context.name, component=_component(source)).inc()

    def on_end(self, context) -> None:
        status = "aborted" if context.is_in_error() else "completed"
        job_runs_total.labels(job_name=context.name, status=status).inc()
        if context.started_at is not None and context.ended_at is not None:
            duration = (context.ended_at - context.started_at).total_seconds()
            job_duration_seconds.labels(job_name=context.name).observe(duration)
