"""Job pipeline settings, read from ``TASK_*`` variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TaskSettings(BaseSettings):
    """Queue, worker limits, retry policy, result retention and the overdue scan."""

    model_config = SettingsConfigDict(
        env_prefix="TASK_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    # ──────────────────────────────────────────────────────────────
    # Queue
    # ──────────────────────────────────────────────────────────────

    queue_name: str = Field(
        default="task-processing",
        min_length=1,
        max_length=100,
        pattern=r"^[a-zA-Z0-9_.-]+$",
        description="Logical job queue name (prefixed with RABBIT_QUEUE_PREFIX on the broker)",
    )
    enqueue_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        le=60.0,
        description="Timeout applied to every enqueue and pending-count call",
    )

    # ──────────────────────────────────────────────────────────────
    # Worker limits
    # ──────────────────────────────────────────────────────────────

    worker_concurrency: int = Field(
        default=5,
        ge=1,
        le=500,
        description="Maximum parallel job executions per worker process",
    )
    worker_max_starts: int = Field(
        default=10,
        ge=1,
        le=10000,
        description="Maximum job starts per throughput window",
    )
    worker_window_seconds: float = Field(
        default=1.0,
        gt=0,
        le=3600.0,
        description="Rolling window for the throughput cap in seconds",
    )

    # ──────────────────────────────────────────────────────────────
    # Retry policy
    # ──────────────────────────────────────────────────────────────

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Total delivery attempts per job before it is abandoned",
    )
    backoff_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        le=300.0,
        description="Initial retry delay; doubles on every retry",
    )
    backoff_max_delay_seconds: float = Field(
        default=60.0,
        ge=0,
        le=3600.0,
        description="Upper bound on the retry delay",
    )

    # ──────────────────────────────────────────────────────────────
    # Result retention (Redis result backend)
    # ──────────────────────────────────────────────────────────────

    completed_retention_seconds: int = Field(
        default=3600,
        ge=60,
        le=604800,
        description="How long successful job results are kept",
    )
    failed_retention_seconds: int = Field(
        default=86400,
        ge=60,
        le=604800,
        description="How long failed job results are kept",
    )
    result_key_prefix: str = Field(
        default="task-service-results",
        min_length=1,
        max_length=50,
        pattern=r"^[a-zA-Z0-9_-]+$",
        description="Redis key prefix for job results",
    )

    # ──────────────────────────────────────────────────────────────
    # Overdue scanner
    # ──────────────────────────────────────────────────────────────

    overdue_batch_size: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Task ids per overdue-notification job",
    )
    overdue_max_tasks_per_run: int = Field(
        default=1000,
        ge=1,
        le=1_000_000,
        description="Hard ceiling on overdue tasks collected by one scan",
    )
    overdue_lock_ttl_seconds: int = Field(
        default=3600,
        ge=1,
        le=86400,
        description="Lifetime of the cross-instance scan lease",
    )
    scheduler_enabled: bool = Field(
        default=True,
        description="Run the hourly overdue scan inside the API process",
    )
    scan_cron_minute: str = Field(
        default="0",
        description="Cron minute field for the overdue scan (hourly by default)",
    )
