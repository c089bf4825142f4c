"""Alert evaluation against aggregated delivery metrics."""

import threading
from collections.abc import Mapping
from typing import Any

import structlog

from delivery.constants import AUDIT_ENTITY_METRICS, CONSECUTIVE_FAILURE_WINDOW_SECONDS
from delivery.enums import AuditStatus
from delivery.schemas import AlertReport, AlertThresholds, RecentFailure
from delivery.services.audit_sink import AuditSink, GuardedAuditSink
from delivery.services.metrics_aggregator import MetricsAggregator

logger = structlog.get_logger(__name__)


def count_close_failures(failures: list[RecentFailure]) -> int:
    """Count adjacent failures less than five minutes apart.

    Args:
        failures: Recent failures, newest first

    Returns:
        Number of adjacent pairs within the window.
    """
    return sum(
        1
        for newer, older in zip(failures, failures[1:], strict=False)
        if abs((newer.timestamp - older.timestamp).total_seconds())
        < CONSECUTIVE_FAILURE_WINDOW_SECONDS
    )


class AlertEvaluator:
    """Compares a metrics snapshot with alert thresholds.

    Thresholds are exceeded strictly. All conditions are evaluated, in a fixed
    order, and a non-empty alert set is reported to the audit sink as a
    single event.
    """

    def __init__(
        self,
        aggregator: MetricsAggregator,
        audit_sink: AuditSink,
        defaults: AlertThresholds | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._audit = GuardedAuditSink(audit_sink)
        self.defaults = defaults or AlertThresholds()

    def check_alerts(
        self, thresholds: Mapping[str, Any] | AlertThresholds | None = None
    ) -> AlertReport:
        """Evaluate the current metrics.

        Args:
            thresholds: Partial overrides of the default thresholds

        Returns:
            The triggered alerts with the metrics and thresholds used.

        Raises:
            ConfigurationError: If an override is unknown or invalid.
        """
        merged = self.defaults.merged(thresholds)
        metrics = self._aggregator.get_metrics()
        alerts: list[str] = []

        if metrics.failure_rate > merged.failure_rate_threshold:
            alerts.append(f"High failure rate: {metrics.failure_rate * 100:.1f}%")

        if metrics.average_retry_attempts > merged.retry_attempts_threshold:
            alerts.append(
                f"High average retry attempts: {metrics.average_retry_attempts:.1f}"
            )

        high_hours = [
            entry
            for entry in metrics.hourly_failure_rate
            if entry.rate > merged.hourly_failure_rate_threshold
        ]
        if high_hours:
            alerts.append(
                f"High hourly failure rates detected in {len(high_hours)} periods"
            )

        close_failures = count_close_failures(metrics.recent_failures)
        if close_failures >= merged.consecutive_failures_threshold:
            alerts.append(f"Consecutive failures detected: {close_failures}")

        if alerts:
            logger.warning("notification_alerts", alerts=alerts)
            self._audit.log_event(
                "notification_alerts",
                AUDIT_ENTITY_METRICS,
                "notification",
                f"Alerts triggered: {', '.join(alerts)}",
                AuditStatus.WARNING,
            )

        return AlertReport(alerts=alerts, metrics=metrics, thresholds=merged)


class AlertMonitor:
    """Runs ``check_alerts`` on a fixed interval in a daemon thread."""

    def __init__(self, evaluator: AlertEvaluator, interval_seconds: float) -> None:
        """Initialize the alert monitor.

        Args:
            evaluator: Evaluator to run
            interval_seconds: Seconds between evaluations
        """
        self.interval_seconds = interval_seconds
        self._evaluator = evaluator
        self._is_running = False
        self._monitor_thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    def start_monitoring(self) -> None:
        """Start the monitoring thread if not already running."""
        if self._is_running:
            logger.debug("alert_monitor_already_running")
            return

        self._is_running = True
        self._stop_event.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitor_loop,
            name="AlertMonitor",
            daemon=True,
        )
        self._monitor_thread.start()
        logger.info("alert_monitor_started", interval_seconds=self.interval_seconds)

    def stop_monitoring(self) -> None:
        """Stop the monitoring thread."""
        if not self._is_running:
            return

        self._is_running = False
        self._stop_event.set()

        if self._monitor_thread is not None:
            self._monitor_thread.join(timeout=5.0)
            self._monitor_thread = None

        logger.info("alert_monitor_stopped")

    def _monitor_loop(self) -> None:
        while not self._stop_event.wait(timeout=self.interval_seconds):
            try:
                self._evaluator.check_alerts()
            except Exception as e:
                logger.error("alert_check_failed", error=str(e), exc_info=True)

    @property
    def is_monitoring(self) -> bool:
        return self._is_running
