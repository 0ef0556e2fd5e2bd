"""
Unit tests for the handler registry.
"""

from datetime import datetime, timezone

import pytest

from chainqueue.constants import JobKind
from chainqueue.types.job import Job, ProcessorResult
from chainqueue.worker.handlers import HandlerRegistry


def make_job(kind: JobKind) -> Job:
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    return Job(
        id="job_handler",
        kind=kind,
        payload={"batchId": "B1"},
        attempts=1,
        max_attempts=3,
        created_at=now,
        next_attempt_at=now,
        idempotency_key="idem_handler",
    )


class TestHandlerRegistry:
    """Tests for HandlerRegistry."""

    @pytest.fixture
    def registry(self) -> HandlerRegistry:
        """Create a registry with a mint handler."""
        handlers = HandlerRegistry()

        @handlers.register(JobKind.MINT_TOKEN)
        async def mint(job: Job) -> ProcessorResult:
            return ProcessorResult.ok(f"0xmint-{job.payload['batchId']}")

        return handlers

    def test_kinds(self, registry: HandlerRegistry):
        """Test listing registered kinds."""
        assert registry.kinds() == [JobKind.MINT_TOKEN]
        assert JobKind.MINT_TOKEN in registry
        assert JobKind.UPDATE_BATCH not in registry

    def test_get_handler(self, registry: HandlerRegistry):
        """Test lookup by enum and by value."""
        assert registry.get(JobKind.MINT_TOKEN) is not None
        assert registry.get("MINT_TOKEN") is registry.get(JobKind.MINT_TOKEN)
        assert registry.get(JobKind.UPDATE_BATCH) is None
        assert registry.get("nonexistent") is None

    def test_register_unknown_kind_rejected(self, registry: HandlerRegistry):
        """Test handlers can only be registered for known kinds."""
        with pytest.raises(ValueError):
            registry.register("nonexistent")

    def test_register_replaces(self, registry: HandlerRegistry):
        """Test re-registering a kind replaces the handler."""

        async def other(job: Job) -> ProcessorResult:
            return ProcessorResult.ok("0xother")

        registry.register(JobKind.MINT_TOKEN)(other)

        assert registry.get(JobKind.MINT_TOKEN) is other

    @pytest.mark.asyncio
    async def test_dispatch(self, registry: HandlerRegistry):
        """Test the registry dispatches on job kind."""
        result = await registry(make_job(JobKind.MINT_TOKEN))

        assert result.success is True
        assert result.result_reference == "0xmint-B1"

    @pytest.mark.asyncio
    async def test_dispatch_unregistered_kind(self, registry: HandlerRegistry):
        """Test an unregistered kind yields a failed result."""
        result = await registry(make_job(JobKind.WHITELIST_PRODUCER))

        assert result.success is False
        assert "No handler registered" in result.error

    @pytest.mark.asyncio
    async def test_dispatch_propagates_handler_errors(self):
        """Test handler exceptions reach the caller."""
        handlers = HandlerRegistry()

        @handlers.register(JobKind.REGISTER_EVENT)
        async def broken(job: Job) -> ProcessorResult:
            raise RuntimeError("nonce too low")

        with pytest.raises(RuntimeError, match="nonce too low"):
            await handlers(make_job(JobKind.REGISTER_EVENT))
