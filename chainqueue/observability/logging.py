"""
Structured logging setup using structlog.
"""

import logging
import sys
from typing import Any

import structlog
from opentelemetry import trace

from chainqueue.config import Settings, get_settings


def add_trace_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Add OpenTelemetry trace context to log records.

    Log lines written while a job attempt is executing carry the
    ``execute_job`` span's ids.
    """
    span = trace.get_current_span()
    if span and span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure structured logging for the process embedding the queue.

    Queue modules log through the standard library with ``extra=`` context;
    the ProcessorFormatter renders those records as JSON or console output
    depending on ``log_format``.

    Args:
        settings: Settings to read level and format from. Defaults to the
            cached environment settings.
    """
    settings = settings or get_settings()

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_trace_context,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]

    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)

    # Exporter retries are noisy when no collector is listening
    logging.getLogger("opentelemetry.exporter").setLevel(logging.ERROR)


def bind_job_context(job_id: str, kind: str, attempt: int) -> None:
    """
    Bind the current job to all log lines until cleared.

    Args:
        job_id: The job being processed.
        kind: The job kind.
        attempt: The attempt number.
    """
    structlog.contextvars.bind_contextvars(job_id=job_id, job_kind=kind, attempt=attempt)


def clear_job_context() -> None:
    """Drop job context bound by ``bind_job_context``."""
    structlog.contextvars.unbind_contextvars("job_id", "job_kind", "attempt")
