"""Pydantic schemas for the delivery engine."""

from delivery.schemas.alerts import AlertReport, AlertThresholds
from delivery.schemas.base_schema_model import BaseSchemaModel, ConfigSchemaModel
from delivery.schemas.metrics import (
    FailureTrends,
    HourlyFailureRate,
    HourlyStat,
    NotificationMetrics,
    QueueMetrics,
    RecentFailure,
    TrendPoint,
)
from delivery.schemas.notification import Notification, NotificationMetadata
from delivery.schemas.queue_job import (
    BackoffPolicy,
    EnqueueOptions,
    JobStatus,
    QueueJob,
)
from delivery.schemas.retry import RetryConfig, RetryJob, RetryJobSnapshot, RetryStats

__all__ = [
    "AlertReport",
    "AlertThresholds",
    "BackoffPolicy",
    "BaseSchemaModel",
    "ConfigSchemaModel",
    "EnqueueOptions",
    "FailureTrends",
    "HourlyFailureRate",
    "HourlyStat",
    "JobStatus",
    "Notification",
    "NotificationMetadata",
    "NotificationMetrics",
    "QueueJob",
    "QueueMetrics",
    "RecentFailure",
    "RetryConfig",
    "RetryJob",
    "RetryJobSnapshot",
    "RetryStats",
    "TrendPoint",
]
