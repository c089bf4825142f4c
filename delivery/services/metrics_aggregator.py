"""Metrics aggregator: derived delivery statistics.

Pure reads over the delivery queue and retry scheduler snapshots. Nothing here
mutates engine state, so repeated calls with no intervening activity return
identical results.
"""

from collections import defaultdict
from collections.abc import Callable
from datetime import date, timedelta

import structlog

from delivery.constants import (
    AUDIT_ENTITY_METRICS,
    RECENT_FAILURES_LIMIT,
    UNKNOWN_ERROR,
)
from delivery.enums import AuditStatus
from delivery.exceptions import DeliveryError
from delivery.schemas import (
    FailureTrends,
    HourlyFailureRate,
    NotificationMetrics,
    QueueMetrics,
    RecentFailure,
    RetryStats,
    TrendPoint,
)
from delivery.services.audit_sink import AuditSink, GuardedAuditSink

logger = structlog.get_logger(__name__)


def compute_metrics(queue: QueueMetrics, retry: RetryStats) -> NotificationMetrics:
    """Derive notification metrics from a queue and a retry snapshot.

    Args:
        queue: Delivery queue snapshot
        retry: Retry scheduler snapshot

    Returns:
        NotificationMetrics with attempt-level totals.
    """
    total_sent = queue.total_attempts
    total_failed = queue.failed_attempts
    failure_rate = total_failed / total_sent if total_sent else 0.0

    failures_by_type = {
        channel: (total_failed * count / queue.total_jobs if queue.total_jobs else 0.0)
        for channel, count in queue.jobs_by_channel.items()
    }

    failures_by_error: dict[str, int] = {}
    for job in retry.jobs:
        error = job.last_error or UNKNOWN_ERROR
        failures_by_error[error] = failures_by_error.get(error, 0) + 1

    hourly_failure_rate = [
        HourlyFailureRate(
            hour=stat.hour,
            rate=stat.failure_count / stat.count if stat.count else 0.0,
        )
        for stat in queue.hourly_stats
    ]

    recent = sorted(retry.jobs, key=lambda job: job.timestamp, reverse=True)
    recent_failures = [
        RecentFailure(
            id=job.notification_id,
            channel=job.channel,
            error=job.last_error,
            timestamp=job.timestamp,
            attempts=job.attempts,
        )
        for job in recent[:RECENT_FAILURES_LIMIT]
    ]

    return NotificationMetrics(
        total_sent=total_sent,
        total_failed=total_failed,
        failure_rate=failure_rate,
        average_retry_attempts=retry.average_attempts,
        failures_by_type=failures_by_type,
        failures_by_error=failures_by_error,
        hourly_failure_rate=hourly_failure_rate,
        recent_failures=recent_failures,
    )


def _week_start(day: date) -> date:
    """Return the Sunday that starts the week containing ``day``."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def aggregate_rates(
    rates: list[HourlyFailureRate], key: Callable[[HourlyFailureRate], str]
) -> list[TrendPoint]:
    """Average hourly rates within buckets, sorted ascending by bucket key."""
    buckets: dict[str, list[float]] = defaultdict(list)
    for entry in rates:
        buckets[key(entry)].append(entry.rate)
    return [
        TrendPoint(key=bucket, rate=sum(values) / len(values))
        for bucket, values in sorted(buckets.items())
    ]


class MetricsAggregator:
    """Produces point-in-time notification metrics and failure trends."""

    def __init__(
        self,
        queue_snapshot: Callable[[], QueueMetrics],
        retry_snapshot: Callable[[], RetryStats],
        audit_sink: AuditSink,
    ) -> None:
        """Initialize the aggregator.

        Args:
            queue_snapshot: Returns the delivery queue snapshot
            retry_snapshot: Returns the retry scheduler snapshot
            audit_sink: Receives ``metrics_error`` events
        """
        self._queue_snapshot = queue_snapshot
        self._retry_snapshot = retry_snapshot
        self._audit = GuardedAuditSink(audit_sink)

    def get_metrics(self) -> NotificationMetrics:
        try:
            return compute_metrics(self._queue_snapshot(), self._retry_snapshot())
        except DeliveryError as e:
            logger.error("metrics_error", error=e.message)
            self._audit.log_event(
                "metrics_error",
                AUDIT_ENTITY_METRICS,
                "notification",
                "Failed to get notification metrics",
                AuditStatus.ERROR,
                e.message,
            )
            raise

    def get_failure_trends(self) -> FailureTrends:
        """Aggregate hourly failure rates into day, week and month buckets.

        Each bucket averages the per-hour rates it contains; only hours with
        activity contribute.
        """
        rates = self.get_metrics().hourly_failure_rate
        return FailureTrends(
            daily=aggregate_rates(rates, lambda r: r.hour.date().isoformat()),
            weekly=aggregate_rates(
                rates, lambda r: _week_start(r.hour.date()).isoformat()
            ),
            monthly=aggregate_rates(rates, lambda r: r.hour.strftime("%Y-%m")),
        )
