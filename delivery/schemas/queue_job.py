"""Schemas for delivery queue jobs and enqueue options."""

from datetime import datetime

from pydantic import Field

from delivery.enums import BackoffType, JobState
from delivery.schemas.base_schema_model import BaseSchemaModel
from delivery.schemas.notification import Notification


class BackoffPolicy(BaseSchemaModel):
    """Delay between store-level retries of enqueue/dispatch writes."""

    type: BackoffType = BackoffType.EXPONENTIAL
    delay_ms: int = Field(100, ge=0)

    def delay_seconds(self, attempt: int) -> float:
        """Return the delay before retry number ``attempt`` (1-based)."""
        if self.type == BackoffType.FIXED:
            return self.delay_ms / 1000
        return self.delay_ms * (2 ** (attempt - 1)) / 1000


class EnqueueOptions(BaseSchemaModel):
    """Per-job hints for the queue's own store-level retries.

    These never count channel sends; delivery retries belong to the retry
    scheduler.
    """

    attempts: int = Field(1, ge=1)
    backoff: BackoffPolicy = Field(default_factory=BackoffPolicy)


class QueueJob(BaseSchemaModel):
    """A notification wrapped with delivery bookkeeping.

    Attributes:
        attempts_made: Channel sender invocations so far, dispatch and retries.
        retry_pending: The retry scheduler currently owns a RetryJob for it.
        abandoned: The retry budget was exhausted; terminal.
        dispatch_failures: Store write failures while claiming the job.
        available_at: When a delayed job becomes dispatchable again.
    """

    id: str
    notification: Notification
    options: EnqueueOptions = Field(default_factory=EnqueueOptions)
    state: JobState = JobState.WAITING
    attempts_made: int = 0
    failure_reason: str | None = None
    retry_pending: bool = False
    abandoned: bool = False
    dispatch_failures: int = 0
    enqueued_at: datetime
    updated_at: datetime
    processed_at: datetime | None = None
    finished_at: datetime | None = None
    available_at: datetime | None = None


class JobStatus(BaseSchemaModel):
    """Status of a single job as returned by ``get_job_status``."""

    job_id: str
    state: JobState
    attempts_made: int
    error: str | None = None
