"""
Application constants.
Centralized location for all constant values used across the queue.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Job lifecycle states.

    State transitions:
    - PENDING -> PROCESSING (picked up by a drain cycle)
    - PROCESSING -> COMPLETED (success)
    - PROCESSING -> PENDING (failure, retry scheduled)
    - PROCESSING -> DEAD (failure, max attempts reached)
    - DEAD -> PENDING (manual reinstatement only)
    """

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    DEAD = "DEAD"


TERMINAL_STATUSES: frozenset[JobStatus] = frozenset(
    {JobStatus.COMPLETED, JobStatus.DEAD}
)


class JobKind(StrEnum):
    """Ledger operations the queue can carry. Only processors interpret these."""

    REGISTER_EVENT = "REGISTER_EVENT"
    MINT_TOKEN = "MINT_TOKEN"
    WHITELIST_PRODUCER = "WHITELIST_PRODUCER"
    UPDATE_BATCH = "UPDATE_BATCH"

    @classmethod
    def _missing_(cls, value):
        # Short names accepted on submission
        if isinstance(value, str):
            return _JOB_KIND_ALIASES.get(value)
        return None


_JOB_KIND_ALIASES: dict[str, JobKind] = {"MINT": JobKind.MINT_TOKEN}


class QueueEventType(StrEnum):
    """Lifecycle events published by the queue."""

    JOB_ENQUEUED = "jobEnqueued"
    JOB_COMPLETED = "jobCompleted"
    JOB_RETRY = "jobRetry"
    JOB_DEAD = "jobDead"
    PROCESSING_DUE = "processingDue"


# Default values
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_INITIAL_DELAY_SECONDS = 1.0
DEFAULT_MAX_DELAY_SECONDS = 300.0
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_PROCESSING_TIMEOUT_SECONDS = 60.0
DEFAULT_PRUNE_AGE_SECONDS = 3600.0

JOB_ID_PREFIX = "job_"
IDEMPOTENCY_KEY_PREFIX = "idem_"

# Metrics names
METRIC_JOBS_ENQUEUED = "chainqueue_jobs_enqueued_total"
METRIC_JOBS_FINISHED = "chainqueue_jobs_finished_total"
METRIC_JOB_RETRIES = "chainqueue_job_retries_total"
METRIC_JOB_DURATION = "chainqueue_job_attempt_duration_seconds"
METRIC_JOBS_BY_STATUS = "chainqueue_jobs"
METRIC_DUPLICATE_SUBMISSIONS = "chainqueue_duplicate_submissions_total"

# Trace span names
SPAN_EXECUTE_JOB = "execute_job"
