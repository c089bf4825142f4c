"""Schemas for queue metrics, notification metrics and failure trends."""

from datetime import datetime

from pydantic import Field

from delivery.enums import Channel
from delivery.schemas.base_schema_model import BaseSchemaModel


class HourlyStat(BaseSchemaModel):
    """Send outcomes within one wall-clock hour (UTC)."""

    hour: datetime
    count: int
    success_count: int
    failure_count: int


class QueueMetrics(BaseSchemaModel):
    """Point-in-time snapshot of the delivery queue.

    Job counters count jobs; ``total_attempts`` and ``failed_attempts`` count
    channel send outcomes, including retries.
    """

    total_jobs: int = 0
    waiting_jobs: int = 0
    active_jobs: int = 0
    completed_jobs: int = 0
    failed_jobs: int = 0
    delayed_jobs: int = 0
    retry_jobs: int = 0
    abandoned_jobs: int = 0
    total_attempts: int = 0
    failed_attempts: int = 0
    average_processing_time_ms: float = 0.0
    paused: bool = False
    jobs_by_channel: dict[str, int] = Field(default_factory=dict)
    jobs_by_priority: dict[str, int] = Field(default_factory=dict)
    jobs_by_state: dict[str, int] = Field(default_factory=dict)
    hourly_stats: list[HourlyStat] = Field(default_factory=list)


class HourlyFailureRate(BaseSchemaModel):
    """Failure rate within one hour bucket."""

    hour: datetime
    rate: float


class RecentFailure(BaseSchemaModel):
    """A pending retry job, as listed among the most recent failures."""

    id: str
    channel: Channel
    error: str | None = None
    timestamp: datetime
    attempts: int


class NotificationMetrics(BaseSchemaModel):
    """Derived delivery metrics."""

    total_sent: int
    total_failed: int
    failure_rate: float = Field(..., ge=0.0, le=1.0)
    average_retry_attempts: float
    failures_by_type: dict[str, float]
    failures_by_error: dict[str, int]
    hourly_failure_rate: list[HourlyFailureRate]
    recent_failures: list[RecentFailure]


class TrendPoint(BaseSchemaModel):
    """Average hourly failure rate within one day/week/month bucket."""

    key: str
    rate: float


class FailureTrends(BaseSchemaModel):
    """Failure rate trends at daily, weekly and monthly granularity."""

    daily: list[TrendPoint]
    weekly: list[TrendPoint]
    monthly: list[TrendPoint]
