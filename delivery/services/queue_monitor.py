"""Queue monitor service: read and administrative operations for operators."""

from collections.abc import Callable, Mapping
from typing import Any, TypeVar

import structlog

from delivery.constants import AUDIT_ENTITY_QUEUE
from delivery.enums import AuditStatus
from delivery.exceptions import DeliveryError
from delivery.schemas import (
    AlertReport,
    AlertThresholds,
    FailureTrends,
    NotificationMetrics,
    QueueJob,
    QueueMetrics,
    RetryJobSnapshot,
)
from delivery.services.alert_evaluator import AlertEvaluator
from delivery.services.audit_sink import AuditSink, GuardedAuditSink
from delivery.services.delivery_queue import DeliveryQueue
from delivery.services.metrics_aggregator import MetricsAggregator
from delivery.services.retry_scheduler import RetryScheduler

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class QueueMonitorService:
    """Metrics consumer API over the delivery engine.

    Every operation that fails with a ``DeliveryError`` is audited as
    ``<operation>_error`` and re-raised. Administrative operations also audit
    their success.
    """

    def __init__(
        self,
        queue: DeliveryQueue,
        retry_scheduler: RetryScheduler,
        aggregator: MetricsAggregator,
        evaluator: AlertEvaluator,
        audit_sink: AuditSink,
    ) -> None:
        self._queue = queue
        self._retry_scheduler = retry_scheduler
        self._aggregator = aggregator
        self._evaluator = evaluator
        self._audit = GuardedAuditSink(audit_sink)

    def get_queue_stats(self) -> QueueMetrics:
        return self._audited(
            "queue_metrics",
            "monitor",
            "Failed to get queue metrics",
            self._queue.get_queue_stats,
        )

    def get_metrics(self) -> NotificationMetrics:
        return self._aggregator.get_metrics()

    def get_failure_trends(self) -> FailureTrends:
        return self._aggregator.get_failure_trends()

    def check_alerts(
        self, thresholds: Mapping[str, Any] | AlertThresholds | None = None
    ) -> AlertReport:
        return self._evaluator.check_alerts(thresholds)

    def get_job_details(self, job_id: str) -> QueueJob:
        """Return a job snapshot.

        Raises:
            JobNotFoundError: If the job does not exist.
        """
        return self._audited(
            "job_details",
            job_id,
            "Failed to get job details",
            lambda: self._queue.get_job(job_id),
        )

    def get_failed_jobs(self) -> list[QueueJob]:
        return self._audited(
            "failed_jobs",
            "monitor",
            "Failed to get failed jobs",
            self._queue.get_failed_jobs,
        )

    def get_retry_jobs(self) -> list[RetryJobSnapshot]:
        return self._audited(
            "retry_jobs",
            "monitor",
            "Failed to get retry jobs",
            self._retry_scheduler.get_retry_jobs,
        )

    def clear_failed_jobs(self) -> int:
        """Purge failed jobs that have no pending retry.

        Returns:
            Number of purged jobs.
        """
        purged = self._audited(
            "clear_failed_jobs",
            "monitor",
            "Failed to clear failed jobs",
            self._queue.clean_failed,
        )
        logger.info("failed_jobs_cleared", purged=purged)
        self._audit.log_event(
            "failed_jobs_cleared",
            AUDIT_ENTITY_QUEUE,
            "monitor",
            f"Failed jobs cleared successfully ({purged} purged)",
            AuditStatus.SUCCESS,
        )
        return purged

    def retry_failed_job(self, job_id: str) -> None:
        """Requeue a failed job for a fresh dispatch.

        Raises:
            JobNotFoundError: If the job does not exist.
            InvalidJobStateError: If the job is not failed or already retrying.
        """
        self._audited(
            "job_retry",
            job_id,
            "Failed to retry job",
            lambda: self._queue.retry_job(job_id),
        )
        logger.info("job_retry_initiated", job_id=job_id)
        self._audit.log_event(
            "job_retry",
            AUDIT_ENTITY_QUEUE,
            job_id,
            "Job retry initiated successfully",
            AuditStatus.SUCCESS,
        )

    def _audited(
        self, operation: str, entity_id: str, details: str, func: Callable[[], T]
    ) -> T:
        try:
            return func()
        except DeliveryError as e:
            logger.error(f"{operation}_error", entity_id=entity_id, error=e.message)
            self._audit.log_event(
                f"{operation}_error",
                AUDIT_ENTITY_QUEUE,
                entity_id,
                details,
                AuditStatus.ERROR,
                e.message,
            )
            raise
