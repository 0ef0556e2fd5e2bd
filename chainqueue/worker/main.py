"""
Worker loop that drives an OperationQueue.

The worker drains the queue whenever the queue's wake-up timer fires, polls
as a safety net, and periodically prunes completed jobs.
"""

import asyncio
import logging
import signal
import time

from chainqueue.config import get_settings
from chainqueue.constants import QueueEventType
from chainqueue.observability.logging import setup_logging
from chainqueue.observability.tracing import setup_tracing
from chainqueue.queue.operation_queue import OperationQueue, Processor
from chainqueue.types.events import JobEvent

logger = logging.getLogger(__name__)


class QueueWorker:
    """
    Runs drain cycles for a queue until stopped.

    Features:
    - Immediate drain on ``processingDue`` wake-ups
    - Poll interval fallback when no wake-up arrives
    - Periodic pruning of completed jobs
    - Graceful shutdown that waits for the in-flight drain
    """

    def __init__(
        self,
        queue: OperationQueue,
        processor: Processor,
        poll_interval_seconds: float | None = None,
        prune_interval_seconds: float | None = None,
        completed_retention_seconds: float | None = None,
    ):
        """
        Initialize the worker.

        Args:
            queue: The queue to drain.
            processor: Performs the external operation for each job.
            poll_interval_seconds: Seconds between drains without a wake-up.
            prune_interval_seconds: Seconds between prune passes.
            completed_retention_seconds: Age after which completed jobs are pruned.
        """
        settings = get_settings()

        self.queue = queue
        self.processor = processor
        self.poll_interval = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else settings.worker_poll_interval_seconds
        )
        self.prune_interval = (
            prune_interval_seconds
            if prune_interval_seconds is not None
            else settings.worker_prune_interval_seconds
        )
        self.retention = (
            completed_retention_seconds
            if completed_retention_seconds is not None
            else settings.completed_retention_seconds
        )

        self._running = False
        self._wake = asyncio.Event()
        self._unsubscribe = None
        self._last_prune: float | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run the worker loop until ``stop`` is called."""
        logger.info(
            "Worker starting",
            extra={"poll_interval": self.poll_interval, "prune_interval": self.prune_interval},
        )

        self._running = True
        self._unsubscribe = self.queue.events.subscribe(
            QueueEventType.PROCESSING_DUE, self._on_processing_due
        )
        # Pick up anything enqueued before the worker subscribed
        self._wake.set()

        try:
            while self._running:
                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    pass
                self._wake.clear()

                if not self._running:
                    break

                try:
                    await self.run_once()
                except Exception as e:
                    logger.exception(f"Error in worker loop: {e}")
        finally:
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
            await self.queue.shutdown()
            logger.info("Worker stopped", extra={"stats": self.queue.get_stats().model_dump()})

    async def stop(self) -> None:
        """Stop the worker gracefully."""
        logger.info("Worker stopping")
        self._running = False
        self._wake.set()

    async def run_once(self) -> int:
        """
        Drain the queue once, then prune on the first call and whenever the
        prune interval has elapsed since the last prune.

        Returns:
            Number of completed jobs pruned.
        """
        await self.queue.drain(self.processor)

        now = time.monotonic()
        if self._last_prune is not None and now - self._last_prune < self.prune_interval:
            return 0

        self._last_prune = now
        return self.queue.prune_completed(self.retention)

    def _on_processing_due(self, event: JobEvent) -> None:
        self._wake.set()


async def run_worker(queue: OperationQueue, processor: Processor) -> None:
    """
    Run a worker for ``queue`` until SIGTERM or SIGINT.

    Intended for services that embed the queue and dedicate a task to it.
    """
    setup_logging()
    setup_tracing()

    worker = QueueWorker(queue, processor)

    loop = asyncio.get_running_loop()
    signals = (signal.SIGTERM, signal.SIGINT)
    for sig in signals:
        loop.add_signal_handler(sig, lambda: asyncio.create_task(worker.stop()))

    try:
        await worker.start()
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)
