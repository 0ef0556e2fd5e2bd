"""
Operation queue: submission, retry scheduling and dead-letter handling.
"""

from chainqueue.queue.backoff import compute_backoff_delay
from chainqueue.queue.events import EventBus
from chainqueue.queue.idempotency import derive_idempotency_key
from chainqueue.queue.operation_queue import OperationQueue, Processor

__all__ = [
    "OperationQueue",
    "Processor",
    "EventBus",
    "compute_backoff_delay",
    "derive_idempotency_key",
]
