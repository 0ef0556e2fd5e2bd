"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Queue retry policy
    queue_max_attempts: int = 5
    queue_initial_delay_seconds: float = 1.0
    queue_max_delay_seconds: float = 300.0
    queue_backoff_multiplier: float = 2.0
    queue_backoff_jitter: float = 0.0
    queue_processing_timeout_seconds: float = 60.0
    queue_shutdown_poll_interval_seconds: float = 0.1

    # Worker Configuration
    worker_poll_interval_seconds: float = 5.0
    worker_prune_interval_seconds: float = 300.0
    completed_retention_seconds: float = 3600.0

    # Observability
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_service_name: str = "chainqueue"
    prometheus_port: int = 9090
    log_level: str = "INFO"
    log_format: str = "json"  # json or console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
