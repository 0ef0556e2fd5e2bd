"""
Job-related type definitions.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from chainqueue.config import Settings
from chainqueue.constants import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_INITIAL_DELAY_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY_SECONDS,
    DEFAULT_PROCESSING_TIMEOUT_SECONDS,
    JobKind,
    JobStatus,
)


class Job(BaseModel):
    """
    A unit of asynchronous ledger work.

    Only the queue mutates these records. Everything handed to callers
    (inspection results, processor arguments, event payloads) is a copy.
    """

    id: str
    kind: JobKind
    payload: dict[str, Any]
    attempts: int = 0
    max_attempts: int
    created_at: datetime
    last_attempt_at: datetime | None = None
    next_attempt_at: datetime
    status: JobStatus = JobStatus.PENDING
    error: str | None = None
    result_reference: str | None = None
    idempotency_key: str

    @property
    def is_last_attempt(self) -> bool:
        """Check if the current attempt is the final one."""
        return self.attempts >= self.max_attempts

    @property
    def remaining_attempts(self) -> int:
        """Get remaining attempts before the job is dead-lettered."""
        return max(0, self.max_attempts - self.attempts)

    def snapshot(self) -> "Job":
        """Return a detached deep copy safe to hand out."""
        return self.model_copy(deep=True)


class ProcessorResult(BaseModel):
    """
    Outcome of one processing attempt.
    Returned by processors; a raised exception counts as ``success=False``.
    """

    success: bool
    result_reference: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, result_reference: str | None = None) -> "ProcessorResult":
        """Create a successful result."""
        return cls(success=True, result_reference=result_reference)

    @classmethod
    def failed(cls, error: str) -> "ProcessorResult":
        """Create a failed result."""
        return cls(success=False, error=error)


class QueueConfig(BaseModel):
    """Retry, backoff and timeout policy for an OperationQueue."""

    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    initial_delay_seconds: float = Field(default=DEFAULT_INITIAL_DELAY_SECONDS, gt=0)
    max_delay_seconds: float = Field(default=DEFAULT_MAX_DELAY_SECONDS, gt=0)
    backoff_multiplier: float = Field(default=DEFAULT_BACKOFF_MULTIPLIER, ge=1)
    backoff_jitter: float = Field(default=0.0, ge=0, le=1)
    processing_timeout_seconds: float = Field(
        default=DEFAULT_PROCESSING_TIMEOUT_SECONDS, gt=0
    )
    shutdown_poll_interval_seconds: float = Field(default=0.1, gt=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "QueueConfig":
        """Build the queue policy from application settings."""
        return cls(
            max_attempts=settings.queue_max_attempts,
            initial_delay_seconds=settings.queue_initial_delay_seconds,
            max_delay_seconds=settings.queue_max_delay_seconds,
            backoff_multiplier=settings.queue_backoff_multiplier,
            backoff_jitter=settings.queue_backoff_jitter,
            processing_timeout_seconds=settings.queue_processing_timeout_seconds,
            shutdown_poll_interval_seconds=settings.queue_shutdown_poll_interval_seconds,
        )


class QueueStats(BaseModel):
    """Job counts per status across the active and dead-letter collections."""

    pending: int = 0
    processing: int = 0
    completed: int = 0
    dead: int = 0
    total: int = 0
