"""
Resilient Operation Queue

An in-process job queue for costly, irreversible ledger operations, with
idempotent submission, exponential backoff retries, a dead-letter set, and
lifecycle events.
"""

__version__ = "1.0.0"

from chainqueue.constants import JobKind, JobStatus, QueueEventType  # noqa: E402
from chainqueue.queue import EventBus, OperationQueue  # noqa: E402
from chainqueue.types import Job, JobEvent, ProcessorResult, QueueConfig, QueueStats  # noqa: E402

__all__ = [
    "__version__",
    "OperationQueue",
    "EventBus",
    "Job",
    "JobEvent",
    "JobKind",
    "JobStatus",
    "ProcessorResult",
    "QueueConfig",
    "QueueEventType",
    "QueueStats",
]
