"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from chainqueue.constants import (
    METRIC_DUPLICATE_SUBMISSIONS,
    METRIC_JOB_DURATION,
    METRIC_JOB_RETRIES,
    METRIC_JOBS_BY_STATUS,
    METRIC_JOBS_ENQUEUED,
    METRIC_JOBS_FINISHED,
    JobStatus,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the operation queue.

    Collects metrics for:
    - Submissions and duplicate submissions
    - Completions and dead-lettered jobs
    - Retries
    - Per-attempt duration
    - Jobs held per status
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.jobs_enqueued = Counter(
            METRIC_JOBS_ENQUEUED,
            "Total number of jobs enqueued",
            ["kind"],
            registry=self._registry,
        )

        self.duplicate_submissions = Counter(
            METRIC_DUPLICATE_SUBMISSIONS,
            "Submissions that resolved to an existing job",
            ["kind"],
            registry=self._registry,
        )

        self.jobs_finished = Counter(
            METRIC_JOBS_FINISHED,
            "Jobs that reached a terminal status",
            ["kind", "status"],
            registry=self._registry,
        )

        self.job_retries = Counter(
            METRIC_JOB_RETRIES,
            "Failed attempts scheduled for retry",
            ["kind"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Processing attempt duration in seconds",
            ["kind", "outcome"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )

        self.jobs_by_status = Gauge(
            METRIC_JOBS_BY_STATUS,
            "Jobs currently held by the queue",
            ["status"],
            registry=self._registry,
        )

    def record_job_enqueued(self, kind: str) -> None:
        """Record a new job."""
        self.jobs_enqueued.labels(kind=kind).inc()

    def record_duplicate(self, kind: str) -> None:
        """Record a submission answered with an existing job id."""
        self.duplicate_submissions.labels(kind=kind).inc()

    def record_attempt(self, kind: str, outcome: str, duration_seconds: float) -> None:
        """Record one processing attempt."""
        self.job_duration.labels(kind=kind, outcome=outcome).observe(duration_seconds)

    def record_job_finished(self, kind: str, status: str) -> None:
        """Record a job reaching COMPLETED or DEAD."""
        self.jobs_finished.labels(kind=kind, status=status).inc()

    def record_retry(self, kind: str) -> None:
        """Record a retry being scheduled."""
        self.job_retries.labels(kind=kind).inc()

    def update_status_counts(self, counts: dict[JobStatus, int]) -> None:
        """Set the per-status gauge, zeroing statuses not present."""
        for status in JobStatus:
            self.jobs_by_status.labels(status=status.value).set(counts.get(status, 0))

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the shared metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """Get the shared metrics collector, creating it on first use."""
    if _metrics is None:
        return setup_metrics()
    return _metrics
