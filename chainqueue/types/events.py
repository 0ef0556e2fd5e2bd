"""
Event type definitions for queue lifecycle notifications.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel

from chainqueue.constants import QueueEventType
from chainqueue.types.job import Job


def _now(timestamp: datetime | None = None) -> datetime:
    return timestamp if timestamp is not None else datetime.now(timezone.utc)


class JobEvent(BaseModel):
    """
    Event emitted when the queue changes a job's state or a wake-up fires.

    ``job`` is a snapshot taken at emission time and is ``None`` only for
    ``processingDue``. Factories default ``timestamp`` to the wall clock; the
    queue passes its own clock.
    """

    event_type: QueueEventType
    timestamp: datetime
    job: Job | None = None
    data: dict[str, Any] | None = None

    @classmethod
    def job_enqueued(cls, job: Job, timestamp: datetime | None = None) -> "JobEvent":
        """Create a job enqueued event."""
        return cls(
            event_type=QueueEventType.JOB_ENQUEUED,
            timestamp=_now(timestamp),
            job=job.snapshot(),
            data={"idempotency_key": job.idempotency_key},
        )

    @classmethod
    def job_completed(cls, job: Job, timestamp: datetime | None = None) -> "JobEvent":
        """Create a job completed event."""
        return cls(
            event_type=QueueEventType.JOB_COMPLETED,
            timestamp=_now(timestamp),
            job=job.snapshot(),
            data={"result_reference": job.result_reference, "attempts": job.attempts},
        )

    @classmethod
    def job_retry(
        cls, job: Job, delay_seconds: float, timestamp: datetime | None = None
    ) -> "JobEvent":
        """Create a retry scheduled event."""
        return cls(
            event_type=QueueEventType.JOB_RETRY,
            timestamp=_now(timestamp),
            job=job.snapshot(),
            data={
                "error": job.error,
                "attempt": job.attempts,
                "delay_seconds": delay_seconds,
            },
        )

    @classmethod
    def job_dead(cls, job: Job, timestamp: datetime | None = None) -> "JobEvent":
        """Create a job moved to dead letter event."""
        return cls(
            event_type=QueueEventType.JOB_DEAD,
            timestamp=_now(timestamp),
            job=job.snapshot(),
            data={"error": job.error, "total_attempts": job.attempts},
        )

    @classmethod
    def processing_due(cls, pending: int, timestamp: datetime | None = None) -> "JobEvent":
        """Create a wake-up event signalling that jobs are due."""
        return cls(
            event_type=QueueEventType.PROCESSING_DUE,
            timestamp=_now(timestamp),
            data={"pending": pending},
        )
