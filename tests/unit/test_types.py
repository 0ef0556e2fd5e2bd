"""
Unit tests for job, result and config types.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from chainqueue.config import Settings
from chainqueue.constants import JobKind, JobStatus
from chainqueue.types.job import Job, ProcessorResult, QueueConfig, QueueStats


class TestQueueConfig:
    """Tests for QueueConfig."""

    def test_defaults(self):
        """Test documented defaults."""
        config = QueueConfig()

        assert config.max_attempts == 5
        assert config.initial_delay_seconds == 1.0
        assert config.max_delay_seconds == 300.0
        assert config.backoff_multiplier == 2.0
        assert config.processing_timeout_seconds == 60.0
        assert config.backoff_jitter == 0.0

    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_attempts": 0},
            {"initial_delay_seconds": 0},
            {"max_delay_seconds": -1},
            {"backoff_multiplier": 0.5},
            {"backoff_jitter": 1.5},
            {"processing_timeout_seconds": 0},
        ],
    )
    def test_invalid_values_rejected(self, overrides: dict):
        """Test nonsensical policies fail validation."""
        with pytest.raises(ValidationError):
            QueueConfig(**overrides)

    def test_from_settings(self):
        """Test building the policy from settings."""
        settings = Settings(
            queue_max_attempts=7,
            queue_initial_delay_seconds=0.5,
            queue_max_delay_seconds=30.0,
            queue_backoff_multiplier=3.0,
            queue_processing_timeout_seconds=10.0,
        )

        config = QueueConfig.from_settings(settings)

        assert config.max_attempts == 7
        assert config.initial_delay_seconds == 0.5
        assert config.max_delay_seconds == 30.0
        assert config.backoff_multiplier == 3.0
        assert config.processing_timeout_seconds == 10.0

    def test_settings_from_environment(self, monkeypatch: pytest.MonkeyPatch):
        """Test settings read queue policy from the environment."""
        monkeypatch.setenv("QUEUE_MAX_ATTEMPTS", "9")
        monkeypatch.setenv("QUEUE_PROCESSING_TIMEOUT_SECONDS", "2.5")

        settings = Settings()

        assert settings.queue_max_attempts == 9
        assert settings.queue_processing_timeout_seconds == 2.5


class TestProcessorResult:
    """Tests for ProcessorResult."""

    def test_ok(self):
        """Test the success helper."""
        result = ProcessorResult.ok("0x1")

        assert result.success is True
        assert result.result_reference == "0x1"
        assert result.error is None

    def test_failed(self):
        """Test the failure helper."""
        result = ProcessorResult.failed("reverted")

        assert result.success is False
        assert result.error == "reverted"

    def test_validate_mapping(self):
        """Test plain mappings validate into results."""
        result = ProcessorResult.model_validate({"success": False, "error": "gas"})

        assert result.error == "gas"


class TestJob:
    """Tests for Job."""

    @pytest.fixture
    def job(self) -> Job:
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        return Job(
            id="job_1",
            kind=JobKind.UPDATE_BATCH,
            payload={"batchId": "B1", "tags": ["a"]},
            attempts=2,
            max_attempts=3,
            created_at=now,
            next_attempt_at=now,
            idempotency_key="idem_1",
        )

    def test_attempt_helpers(self, job: Job):
        """Test remaining attempt bookkeeping."""
        assert job.status == JobStatus.PENDING
        assert job.remaining_attempts == 1
        assert job.is_last_attempt is False

        job.attempts = 3
        assert job.is_last_attempt is True
        assert job.remaining_attempts == 0

    def test_snapshot_is_deep(self, job: Job):
        """Test snapshots do not share nested payload state."""
        copy = job.snapshot()
        copy.payload["tags"].append("b")

        assert job.payload["tags"] == ["a"]

    def test_stats_defaults(self):
        """Test empty stats."""
        assert QueueStats().model_dump() == {
            "pending": 0,
            "processing": 0,
            "completed": 0,
            "dead": 0,
            "total": 0,
        }
