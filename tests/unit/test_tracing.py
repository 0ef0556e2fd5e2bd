"""
Unit tests for tracing setup.
"""

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from chainqueue.config import get_settings
from chainqueue.constants import SPAN_EXECUTE_JOB, JobKind
from chainqueue.observability import tracing
from chainqueue.queue.operation_queue import OperationQueue
from chainqueue.types.job import Job, ProcessorResult


class TestSetupTracing:
    """Tests for the tracer provider wiring."""

    @pytest.fixture
    def installed(self, monkeypatch: pytest.MonkeyPatch) -> list:
        """Capture providers instead of replacing the global one."""
        providers: list = []
        monkeypatch.setattr(tracing, "_tracer", None)
        monkeypatch.setattr(trace, "set_tracer_provider", providers.append)
        return providers

    @pytest.fixture
    def exporter(self, installed: list) -> InMemorySpanExporter:
        return InMemorySpanExporter()

    def test_setup_installs_provider(self, exporter: InMemorySpanExporter, installed: list):
        """Test setup registers a provider and caches its tracer."""
        tracer = tracing.setup_tracing(exporter=exporter)

        assert len(installed) == 1
        assert tracing.get_tracer() is tracer

    async def test_job_attempts_are_traced(
        self, exporter: InMemorySpanExporter, queue: OperationQueue
    ):
        """Test each attempt is exported as an execute_job span."""
        tracing.setup_tracing(exporter=exporter)

        async def succeed(job: Job) -> ProcessorResult:
            return ProcessorResult.ok("0xabc")

        job_id = queue.enqueue(JobKind.REGISTER_EVENT, {"batchId": "B1"})
        await queue.drain(succeed)

        spans = exporter.get_finished_spans()
        assert [span.name for span in spans] == [SPAN_EXECUTE_JOB]
        attributes = spans[0].attributes
        assert attributes["job_id"] == job_id
        assert attributes["job_kind"] == "REGISTER_EVENT"
        assert attributes["attempt"] == 1
        assert attributes["success"] is True
        assert spans[0].resource.attributes["service.name"] == get_settings().otel_service_name

    def test_get_tracer_without_setup(self, installed: list):
        """Test get_tracer works before setup."""
        assert tracing.get_tracer() is not None
        assert installed == []
