"""
Type definitions for the operation queue.
"""

from chainqueue.types.events import JobEvent
from chainqueue.types.job import (
    Job,
    ProcessorResult,
    QueueConfig,
    QueueStats,
)

__all__ = [
    # Job types
    "Job",
    "ProcessorResult",
    "QueueConfig",
    "QueueStats",
    # Event types
    "JobEvent",
]
