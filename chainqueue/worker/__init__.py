"""
Worker module.
Contains the handler registry and the loop that drains the queue.
"""

from chainqueue.worker.handlers import HandlerRegistry, JobHandler
from chainqueue.worker.main import QueueWorker, run_worker

__all__ = ["HandlerRegistry", "JobHandler", "QueueWorker", "run_worker"]
