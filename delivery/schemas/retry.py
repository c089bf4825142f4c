"""Schemas for the retry scheduler."""

from datetime import datetime

from pydantic import Field, model_validator

from delivery.constants import (
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_INITIAL_DELAY_MS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY_MS,
)
from delivery.enums import Channel
from delivery.schemas.base_schema_model import BaseSchemaModel, ConfigSchemaModel
from delivery.schemas.notification import Notification


class RetryConfig(ConfigSchemaModel):
    """Process-wide retry policy, immutable after construction."""

    max_attempts: int = Field(DEFAULT_MAX_ATTEMPTS, ge=1)
    initial_delay_ms: int = Field(DEFAULT_INITIAL_DELAY_MS, gt=0)
    max_delay_ms: int = Field(DEFAULT_MAX_DELAY_MS, gt=0)
    backoff_factor: float = Field(DEFAULT_BACKOFF_FACTOR, ge=1)

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> "RetryConfig":
        if self.max_delay_ms < self.initial_delay_ms:
            raise ValueError("max_delay_ms must be >= initial_delay_ms")
        return self

    def delay_ms_for(self, attempts: int) -> float:
        """Return the backoff delay in milliseconds after ``attempts`` failures.

        ``min(initial_delay * backoff_factor ** (attempts - 1), max_delay)``
        """
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        return min(
            self.initial_delay_ms * self.backoff_factor ** (attempts - 1),
            self.max_delay_ms,
        )


class RetryJob(BaseSchemaModel):
    """A failed notification owned by the retry scheduler.

    ``attempts`` counts failed sends in the current retry cycle and starts at 1
    on the failure that created the job. ``updated_at`` is the time of the
    most recent failure.
    """

    notification: Notification
    attempts: int = Field(1, ge=1)
    next_attempt_at: datetime
    last_error: str | None = None
    created_at: datetime
    updated_at: datetime


class RetryJobSnapshot(BaseSchemaModel):
    """Read-only view of a pending retry job."""

    notification_id: str
    channel: Channel
    attempts: int
    next_attempt_at: datetime
    last_error: str | None = None
    timestamp: datetime

    @classmethod
    def from_job(cls, job: RetryJob) -> "RetryJobSnapshot":
        """Build a snapshot from a live retry job."""
        return cls(
            notification_id=job.notification.id,
            channel=job.notification.channel,
            attempts=job.attempts,
            next_attempt_at=job.next_attempt_at,
            last_error=job.last_error,
            timestamp=job.updated_at,
        )


class RetryStats(BaseSchemaModel):
    """Snapshot of the retry scheduler.

    ``average_attempts`` covers pending jobs and every resolved retry cycle
    (succeeded or abandoned).
    """

    queue_size: int
    jobs: list[RetryJobSnapshot]
    average_attempts: float = 0.0
    succeeded_count: int = 0
    abandoned_count: int = 0
