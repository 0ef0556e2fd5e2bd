"""
Exceptions raised inside the queue while processing jobs.

None of these escape ``OperationQueue.drain``; they are caught per attempt and
recorded as the job's error message.
"""


class QueueError(Exception):
    """Base class for queue errors."""


class ProcessingTimeoutError(QueueError):
    """A processor did not settle within the processing timeout."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Processing timeout after {timeout_seconds:g}s")


class InvalidProcessorResultError(QueueError):
    """A processor returned something that is not a ProcessorResult."""
