"""
Pytest configuration and shared fixtures.
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from prometheus_client import CollectorRegistry

from chainqueue.observability.metrics import MetricsCollector
from chainqueue.queue.events import EventBus
from chainqueue.queue.operation_queue import OperationQueue
from chainqueue.types.job import QueueConfig


class FakeClock:
    """Manually advanced clock for deterministic scheduling tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """Create a controllable clock."""
    return FakeClock()


@pytest.fixture
def registry() -> CollectorRegistry:
    """Create an isolated Prometheus registry."""
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> MetricsCollector:
    """Create a metrics collector bound to the isolated registry."""
    return MetricsCollector(registry=registry)


@pytest.fixture
def events() -> EventBus:
    """Create an event bus."""
    return EventBus()


@pytest.fixture
def queue_config() -> QueueConfig:
    """Create a queue config with short, test-friendly values."""
    return QueueConfig(
        max_attempts=3,
        initial_delay_seconds=1.0,
        max_delay_seconds=300.0,
        backoff_multiplier=2.0,
        processing_timeout_seconds=5.0,
        shutdown_poll_interval_seconds=0.01,
    )


@pytest_asyncio.fixture
async def queue(
    queue_config: QueueConfig,
    events: EventBus,
    metrics: MetricsCollector,
    clock: FakeClock,
) -> AsyncGenerator[OperationQueue]:
    """Create a queue driven by the fake clock."""
    q = OperationQueue(queue_config, events=events, metrics=metrics, clock=clock)
    yield q
    await q.shutdown()


@pytest.fixture
def sample_payload() -> dict[str, Any]:
    """Create a sample job payload."""
    return {"batchId": "B1", "eventType": "HARVEST", "metadata": {"weightKg": 1200}}
