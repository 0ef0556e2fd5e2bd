"""
Resilient in-memory queue for ledger operations.

Submissions are deduplicated by idempotency key, failed attempts are retried
with exponential backoff, and jobs that exhaust their attempts are moved to a
dead-letter collection for manual handling.
"""

import asyncio
import copy
import logging
import random
import time
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable
from uuid import uuid4

from pydantic import ValidationError

from chainqueue.config import get_settings
from chainqueue.constants import (
    DEFAULT_PRUNE_AGE_SECONDS,
    JOB_ID_PREFIX,
    SPAN_EXECUTE_JOB,
    JobKind,
    JobStatus,
)
from chainqueue.exceptions import InvalidProcessorResultError, ProcessingTimeoutError
from chainqueue.observability.logging import bind_job_context, clear_job_context
from chainqueue.observability.metrics import MetricsCollector, get_metrics
from chainqueue.observability.tracing import get_tracer
from chainqueue.queue.backoff import compute_backoff_delay
from chainqueue.queue.events import EventBus
from chainqueue.queue.idempotency import derive_idempotency_key
from chainqueue.types.events import JobEvent
from chainqueue.types.job import Job, ProcessorResult, QueueConfig, QueueStats

logger = logging.getLogger(__name__)

# Processor receives a job snapshot and reports the outcome
Processor = Callable[[Job], Awaitable[ProcessorResult | Mapping[str, Any]]]
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class OperationQueue:
    """
    In-process job queue with idempotency, retries and a dead-letter set.

    All job state is mutated here and only here. Drain cycles are serialized
    by a re-entrancy guard and process due jobs one at a time, so no two
    attempts ever run concurrently.
    """

    def __init__(
        self,
        config: QueueConfig | None = None,
        *,
        events: EventBus | None = None,
        metrics: MetricsCollector | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ):
        """
        Initialize the queue.

        Args:
            config: Retry and timeout policy. Defaults to environment settings.
            events: Event channel to publish lifecycle events on.
            metrics: Metrics collector. Defaults to the shared collector.
            clock: Returns the current aware UTC time.
            rng: Random source for backoff jitter.
        """
        self.config = config or QueueConfig.from_settings(get_settings())
        self.events = events or EventBus()
        self._metrics = metrics or get_metrics()
        self._clock = clock or utcnow
        self._rng = rng or random.Random()

        self._jobs: dict[str, Job] = {}
        self._dead_letter: dict[str, Job] = {}
        # idempotency key -> id of the active job holding it
        self._keys: dict[str, str] = {}

        self._draining = False
        self._closed = False
        self._wakeup: asyncio.TimerHandle | None = None

    def __len__(self) -> int:
        return len(self._jobs)

    @property
    def is_draining(self) -> bool:
        """Whether a drain cycle is in flight."""
        return self._draining

    @property
    def is_closed(self) -> bool:
        """Whether ``shutdown`` has been called."""
        return self._closed

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def enqueue(
        self,
        kind: JobKind | str,
        payload: dict[str, Any],
        idempotency_key: str | None = None,
    ) -> str:
        """
        Add a job to the queue.

        If an active job already holds the idempotency key, its id is returned
        and nothing is created or modified. Dead-lettered jobs hold no key, so
        resubmitting one creates a new job.

        Args:
            kind: The ledger operation to perform.
            payload: Operation arguments, opaque to the queue.
            idempotency_key: Caller supplied key. Derived from kind and
                payload when omitted.

        Returns:
            The id of the new or existing job.

        Raises:
            ValueError: If ``kind`` is not a known JobKind.
        """
        kind = JobKind(kind)
        key = idempotency_key or derive_idempotency_key(kind, payload)

        existing_id = self._keys.get(key)
        if existing_id is not None:
            logger.info(
                "Duplicate job rejected",
                extra={"job_id": existing_id, "kind": str(kind), "idempotency_key": key},
            )
            self._metrics.record_duplicate(kind.value)
            return existing_id

        now = self._clock()
        job = Job(
            id=f"{JOB_ID_PREFIX}{uuid4().hex}",
            kind=kind,
            payload=copy.deepcopy(payload),
            attempts=0,
            max_attempts=self.config.max_attempts,
            created_at=now,
            next_attempt_at=now,
            status=JobStatus.PENDING,
            idempotency_key=key,
        )

        self._jobs[job.id] = job
        self._keys[key] = job.id

        logger.info(
            "Job enqueued",
            extra={"job_id": job.id, "kind": str(kind), "idempotency_key": key},
        )
        self._metrics.record_job_enqueued(kind.value)
        self._refresh_status_gauge()

        self.events.publish(JobEvent.job_enqueued(job, timestamp=now))
        self._schedule_wakeup()

        return job.id

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def drain(self, processor: Processor) -> None:
        """
        Process every due pending job once, earliest due first.

        A call made while another drain is in flight, or after shutdown, does
        nothing. Per-job failures never propagate out of this method.

        Args:
            processor: Performs the external operation for one job.
        """
        if self._draining or self._closed:
            return
        self._draining = True

        try:
            now = self._clock()
            due = sorted(
                (
                    job
                    for job in self._jobs.values()
                    if job.status == JobStatus.PENDING and job.next_attempt_at <= now
                ),
                key=lambda job: job.next_attempt_at,
            )

            if due:
                logger.debug("Drain cycle started", extra={"due": len(due)})

            for job in due:
                # State may have moved on since selection
                if self._jobs.get(job.id) is not job or job.status != JobStatus.PENDING:
                    continue
                await self._process_job(job, processor)
        finally:
            self._draining = False
            self._schedule_wakeup()

    async def _process_job(self, job: Job, processor: Processor) -> None:
        """Run a single attempt and apply its outcome."""
        job.status = JobStatus.PROCESSING
        job.attempts += 1
        job.last_attempt_at = self._clock()
        self._refresh_status_gauge()

        bind_job_context(job.id, job.kind.value, job.attempts)
        logger.info(
            "Processing job",
            extra={"job_id": job.id, "kind": str(job.kind), "attempt": job.attempts},
        )

        start_time = time.monotonic()
        outcome = "failure"
        try:
            with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
                span.set_attribute("job_id", job.id)
                span.set_attribute("job_kind", job.kind.value)
                span.set_attribute("attempt", job.attempts)

                try:
                    result = await self._run_processor(job, processor)
                except asyncio.CancelledError:
                    self._handle_failure(job, "Processing cancelled")
                    raise
                except ProcessingTimeoutError as e:
                    outcome = "timeout"
                    logger.warning(
                        "Job attempt timed out",
                        extra={"job_id": job.id, "timeout": e.timeout_seconds},
                    )
                    self._handle_failure(job, str(e))
                    return
                except Exception as e:
                    logger.exception(
                        "Processor raised exception",
                        extra={"job_id": job.id, "error": str(e)},
                    )
                    self._handle_failure(job, str(e) or type(e).__name__)
                    return

                span.set_attribute("success", result.success)

                if result.success:
                    outcome = "success"
                    self._handle_success(job, result)
                else:
                    self._handle_failure(job, result.error or "Unknown error")
        finally:
            self._metrics.record_attempt(
                job.kind.value, outcome, time.monotonic() - start_time
            )
            clear_job_context()

    async def _run_processor(self, job: Job, processor: Processor) -> ProcessorResult:
        """
        Invoke the processor under the processing timeout.

        The processor coroutine is cancelled when the timeout expires. A
        TimeoutError raised by the processor itself propagates unchanged.

        Raises:
            ProcessingTimeoutError: If the processor did not settle in time.
            InvalidProcessorResultError: If the result has the wrong shape.
        """
        timeout = self.config.processing_timeout_seconds
        deadline = asyncio.timeout(timeout)
        try:
            async with deadline:
                raw = await processor(job.snapshot())
        except TimeoutError:
            if deadline.expired():
                raise ProcessingTimeoutError(timeout) from None
            raise

        if isinstance(raw, ProcessorResult):
            return raw
        try:
            return ProcessorResult.model_validate(raw)
        except ValidationError as e:
            raise InvalidProcessorResultError(
                f"Invalid processor result: {e.error_count()} validation error(s)"
            ) from e

    def _handle_success(self, job: Job, result: ProcessorResult) -> None:
        job.status = JobStatus.COMPLETED
        job.result_reference = result.result_reference

        logger.info(
            "Job completed",
            extra={
                "job_id": job.id,
                "attempt": job.attempts,
                "result_reference": result.result_reference,
            },
        )
        self._metrics.record_job_finished(job.kind.value, JobStatus.COMPLETED.value)
        self._refresh_status_gauge()
        self.events.publish(JobEvent.job_completed(job, timestamp=self._clock()))

    def _handle_failure(self, job: Job, error: str) -> None:
        """Either schedule a retry or move the job to the dead-letter set."""
        job.error = error

        if job.attempts >= job.max_attempts:
            job.status = JobStatus.DEAD
            self._jobs.pop(job.id, None)
            self._dead_letter[job.id] = job
            self._release_key(job)

            logger.warning(
                "Job moved to dead letter queue",
                extra={"job_id": job.id, "attempts": job.attempts, "error": error},
            )
            self._metrics.record_job_finished(job.kind.value, JobStatus.DEAD.value)
            self._refresh_status_gauge()
            self.events.publish(JobEvent.job_dead(job, timestamp=self._clock()))
            return

        delay = compute_backoff_delay(
            job.attempts,
            initial_delay_seconds=self.config.initial_delay_seconds,
            backoff_multiplier=self.config.backoff_multiplier,
            max_delay_seconds=self.config.max_delay_seconds,
            jitter=self.config.backoff_jitter,
            rng=self._rng,
        )
        now = self._clock()
        job.status = JobStatus.PENDING
        job.next_attempt_at = now + timedelta(seconds=delay)

        logger.info(
            "Job scheduled for retry",
            extra={
                "job_id": job.id,
                "attempt": job.attempts,
                "error": error,
                "next_attempt_at": job.next_attempt_at.isoformat(),
            },
        )
        self._metrics.record_retry(job.kind.value)
        self._refresh_status_gauge()
        self.events.publish(JobEvent.job_retry(job, delay, timestamp=now))

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def get_job(self, job_id: str, *, include_dead_letter: bool = False) -> Job | None:
        """
        Get a snapshot of a job by id.

        Args:
            job_id: The job id.
            include_dead_letter: Also look in the dead-letter collection.

        Returns:
            A copy of the job, or None if not found.
        """
        job = self._jobs.get(job_id)
        if job is None and include_dead_letter:
            job = self._dead_letter.get(job_id)
        return job.snapshot() if job is not None else None

    def get_jobs_by_status(self, status: JobStatus | str) -> list[Job]:
        """Get snapshots of all jobs with the given status."""
        status = JobStatus(status)
        if status == JobStatus.DEAD:
            return self.get_dead_letter_queue()
        return [job.snapshot() for job in self._jobs.values() if job.status == status]

    def get_dead_letter_queue(self) -> list[Job]:
        """Get snapshots of dead-lettered jobs, oldest first."""
        return [job.snapshot() for job in self._dead_letter.values()]

    def get_stats(self) -> QueueStats:
        """Count jobs per status across active and dead-letter collections."""
        counts = self._status_counts()
        return QueueStats(
            pending=counts[JobStatus.PENDING],
            processing=counts[JobStatus.PROCESSING],
            completed=counts[JobStatus.COMPLETED],
            dead=counts[JobStatus.DEAD],
            total=len(self._jobs) + len(self._dead_letter),
        )

    def next_due_at(self) -> datetime | None:
        """Earliest ``next_attempt_at`` among pending jobs."""
        pending = [
            job.next_attempt_at
            for job in self._jobs.values()
            if job.status == JobStatus.PENDING
        ]
        return min(pending) if pending else None

    # ------------------------------------------------------------------
    # Dead letter management
    # ------------------------------------------------------------------

    def retry_dead_letter(self, job_id: str) -> bool:
        """
        Reinstate a dead-lettered job with a fresh attempt budget.

        The job reclaims its idempotency key. If an active job has claimed the
        key since, the dead-lettered job stays where it is.

        Args:
            job_id: Id of a job in the dead-letter collection.

        Returns:
            True if the job was found and reinstated.
        """
        job = self._dead_letter.get(job_id)
        if job is None:
            return False

        holder_id = self._keys.get(job.idempotency_key)
        if holder_id is not None:
            logger.warning(
                "Dead letter job not requeued, idempotency key in use",
                extra={"job_id": job_id, "holder_job_id": holder_id},
            )
            return False

        del self._dead_letter[job_id]

        job.status = JobStatus.PENDING
        job.attempts = 0
        job.next_attempt_at = self._clock()
        job.error = None
        self._jobs[job.id] = job
        self._keys[job.idempotency_key] = job.id

        logger.info("Dead letter job requeued", extra={"job_id": job_id})
        self._refresh_status_gauge()
        self._schedule_wakeup()
        return True

    def discard_dead_letter(self, job_id: str) -> bool:
        """
        Permanently drop a dead-lettered job.

        Returns:
            True if a job was removed.
        """
        job = self._dead_letter.pop(job_id, None)
        if job is None:
            return False

        logger.info(
            "Dead letter job discarded",
            extra={"job_id": job_id, "idempotency_key": job.idempotency_key},
        )
        self._refresh_status_gauge()
        return True

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def prune_completed(self, older_than_seconds: float = DEFAULT_PRUNE_AGE_SECONDS) -> int:
        """
        Remove completed jobs whose last attempt is older than the cutoff.

        Their idempotency keys are released. Dead-lettered jobs are untouched.

        Returns:
            Number of jobs removed.
        """
        cutoff = self._clock() - timedelta(seconds=older_than_seconds)
        stale = [
            job
            for job in self._jobs.values()
            if job.status == JobStatus.COMPLETED
            and job.last_attempt_at is not None
            and job.last_attempt_at < cutoff
        ]

        for job in stale:
            del self._jobs[job.id]
            self._release_key(job)

        if stale:
            logger.info(f"Pruned {len(stale)} completed jobs")
            self._refresh_status_gauge()

        return len(stale)

    async def shutdown(self) -> None:
        """
        Stop scheduling and wait for an in-flight drain to finish.

        No drain cycle starts after this is called.
        """
        self._closed = True
        self._cancel_wakeup()

        while self._draining:
            await asyncio.sleep(self.config.shutdown_poll_interval_seconds)

        logger.info("Operation queue shut down", extra={"active_jobs": len(self._jobs)})

    # ------------------------------------------------------------------
    # Wake-up scheduling
    # ------------------------------------------------------------------

    def _schedule_wakeup(self) -> None:
        """Arm a one-shot timer for the earliest due pending job."""
        self._cancel_wakeup()
        if self._closed:
            return

        due_at = self.next_due_at()
        if due_at is None:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Synchronous caller; the next state change or drain re-arms
            return

        delay = max(0.0, (due_at - self._clock()).total_seconds())
        self._wakeup = loop.call_later(delay, self._on_wakeup)

    def _cancel_wakeup(self) -> None:
        if self._wakeup is not None:
            self._wakeup.cancel()
            self._wakeup = None

    def _on_wakeup(self) -> None:
        self._wakeup = None
        if self._closed:
            return
        pending = sum(1 for job in self._jobs.values() if job.status == JobStatus.PENDING)
        self.events.publish(JobEvent.processing_due(pending, timestamp=self._clock()))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _release_key(self, job: Job) -> None:
        if self._keys.get(job.idempotency_key) == job.id:
            del self._keys[job.idempotency_key]

    def _status_counts(self) -> dict[JobStatus, int]:
        counts = {status: 0 for status in JobStatus}
        for job in self._jobs.values():
            counts[job.status] += 1
        counts[JobStatus.DEAD] += len(self._dead_letter)
        return counts

    def _refresh_status_gauge(self) -> None:
        self._metrics.update_status_counts(self._status_counts())
