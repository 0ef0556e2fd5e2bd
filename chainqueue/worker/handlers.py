"""
Job handler registry.

Handlers perform the actual ledger operation for one job kind. They must be
idempotent: a timed-out attempt may still have landed on chain before the
job is retried.
"""

import logging
from typing import Awaitable, Callable

from chainqueue.constants import JobKind
from chainqueue.types.job import Job, ProcessorResult

logger = logging.getLogger(__name__)

# Type alias for job handler functions
JobHandler = Callable[[Job], Awaitable[ProcessorResult]]


class HandlerRegistry:
    """
    Maps job kinds to handlers.

    The registry is itself a processor: pass it to ``OperationQueue.drain``
    and each job is dispatched on its kind.

    Example:
        handlers = HandlerRegistry()

        @handlers.register(JobKind.MINT_TOKEN)
        async def mint(job: Job) -> ProcessorResult:
            ...
    """

    def __init__(self) -> None:
        self._handlers: dict[JobKind, JobHandler] = {}

    def register(self, kind: JobKind | str) -> Callable[[JobHandler], JobHandler]:
        """
        Decorator to register a handler for a job kind.

        Registering a kind twice replaces the earlier handler.
        """
        kind = JobKind(kind)

        def decorator(handler: JobHandler) -> JobHandler:
            if kind in self._handlers:
                logger.warning(f"Replacing handler for job kind: {kind}")
            self._handlers[kind] = handler
            logger.info(f"Registered handler for job kind: {kind}")
            return handler

        return decorator

    def get(self, kind: JobKind | str) -> JobHandler | None:
        """Get the handler for a job kind, or None."""
        try:
            return self._handlers.get(JobKind(kind))
        except ValueError:
            return None

    def kinds(self) -> list[JobKind]:
        """List all kinds with a registered handler."""
        return list(self._handlers.keys())

    def __contains__(self, kind: object) -> bool:
        return kind in self._handlers

    async def __call__(self, job: Job) -> ProcessorResult:
        """
        Dispatch a job to its handler.

        Handler exceptions propagate; the queue records them as failed
        attempts.
        """
        handler = self._handlers.get(job.kind)

        if handler is None:
            logger.error(
                f"No handler for job kind: {job.kind}",
                extra={"job_id": job.id},
            )
            return ProcessorResult.failed(f"No handler registered for kind: {job.kind}")

        return await handler(job)
