"""Delivery engine services."""

from delivery.services.alert_evaluator import AlertEvaluator, AlertMonitor
from delivery.services.audit_sink import AuditSink, GuardedAuditSink, StructlogAuditSink
from delivery.services.channel_sender import (
    ChannelRouter,
    ChannelSender,
    SendResult,
    TimedChannelSender,
)
from delivery.services.delivery_queue import DeliveryQueue, QueueListener
from delivery.services.job_store import DjangoJobStore, InMemoryJobStore, JobStore
from delivery.services.metrics_aggregator import MetricsAggregator
from delivery.services.queue_monitor import QueueMonitorService
from delivery.services.retry_scheduler import RetryListener, RetryScheduler

__all__ = [
    "AlertEvaluator",
    "AlertMonitor",
    "AuditSink",
    "ChannelRouter",
    "ChannelSender",
    "DeliveryQueue",
    "DjangoJobStore",
    "GuardedAuditSink",
    "InMemoryJobStore",
    "JobStore",
    "MetricsAggregator",
    "QueueListener",
    "QueueMonitorService",
    "RetryListener",
    "RetryScheduler",
    "SendResult",
    "StructlogAuditSink",
    "TimedChannelSender",
]
