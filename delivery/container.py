"""Composition root: builds and wires the delivery engine components."""

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from delivery.config import EngineSettings
from delivery.enums import Channel
from delivery.schemas import EnqueueOptions, Notification
from delivery.services.alert_evaluator import AlertEvaluator, AlertMonitor
from delivery.services.audit_sink import AuditSink, StructlogAuditSink
from delivery.services.channel_sender import (
    ChannelRouter,
    ChannelSender,
    TimedChannelSender,
)
from delivery.services.channels import (
    EmailChannelSender,
    GatewayChannelSender,
    InAppChannelSender,
)
from delivery.services.delivery_queue import DeliveryQueue
from delivery.services.job_store import DjangoJobStore, InMemoryJobStore, JobStore
from delivery.services.metrics_aggregator import MetricsAggregator
from delivery.services.queue_monitor import QueueMonitorService
from delivery.services.retry_scheduler import RetryScheduler

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DeliveryEngine:
    """The wired set of engine components owned by one process."""

    def __init__(
        self,
        settings: EngineSettings,
        sender: TimedChannelSender,
        queue: DeliveryQueue,
        retry_scheduler: RetryScheduler,
        aggregator: MetricsAggregator,
        evaluator: AlertEvaluator,
        monitor: QueueMonitorService,
        alert_monitor: AlertMonitor | None = None,
    ) -> None:
        self.settings = settings
        self.sender = sender
        self.queue = queue
        self.retry_scheduler = retry_scheduler
        self.aggregator = aggregator
        self.evaluator = evaluator
        self.monitor = monitor
        self.alert_monitor = alert_monitor
        self._started = False

    def enqueue(
        self, notification: Notification, options: EnqueueOptions | None = None
    ) -> str:
        return self.queue.enqueue(notification, options)

    def recover(self) -> int:
        """Reload unfinished jobs from the job store."""
        return self.queue.recover()

    def start(self) -> None:
        """Start workers and, when configured, the alert monitor."""
        if self._started:
            return
        self.queue.start()
        if self.alert_monitor is not None:
            self.alert_monitor.start_monitoring()
        self._started = True
        logger.info(
            "delivery_engine_started",
            worker_count=self.settings.worker_count,
            job_store=self.settings.job_store,
        )

    def stop(self) -> None:
        """Stop every background thread.

        A stopped engine refuses sends; build a new one and call ``recover``
        to resume from the job store.
        """
        if self.alert_monitor is not None:
            self.alert_monitor.stop_monitoring()
        self.queue.stop()
        self.retry_scheduler.stop()
        self.sender.shutdown()
        self._started = False
        logger.info("delivery_engine_stopped")

    @property
    def is_running(self) -> bool:
        return self._started


def build_default_router(settings: EngineSettings) -> ChannelRouter:
    """Register the channel adapters available under ``settings``.

    SMS and PUSH are registered only when a gateway URL is configured; sends
    on an unregistered channel fail and go through the retry path.
    """
    router = ChannelRouter()
    router.register(Channel.EMAIL, EmailChannelSender())
    router.register(Channel.IN_APP, InAppChannelSender())
    if settings.sms_gateway_url:
        router.register(
            Channel.SMS,
            GatewayChannelSender(
                "sms-gateway", settings.sms_gateway_url, settings.gateway_api_key
            ),
        )
    if settings.push_gateway_url:
        router.register(
            Channel.PUSH,
            GatewayChannelSender(
                "push-gateway", settings.push_gateway_url, settings.gateway_api_key
            ),
        )
    return router


def build_job_store(settings: EngineSettings) -> JobStore:
    if settings.job_store == "django":
        return DjangoJobStore()
    return InMemoryJobStore()


def build_engine(
    settings: EngineSettings | None = None,
    sender: ChannelSender | None = None,
    audit_sink: AuditSink | None = None,
    store: JobStore | None = None,
    clock: Callable[[], datetime] = _utcnow,
    auto_start_sweep: bool = True,
) -> DeliveryEngine:
    """Construct and wire every engine component.

    Args:
        settings: Engine settings; read from Django settings when omitted
        sender: Channel sender; defaults to the adapter router
        audit_sink: Audit sink; defaults to the structlog sink
        store: Job store; defaults to the store named in settings
        clock: Returns the current UTC time
        auto_start_sweep: Start the retry sweep when a retry job is added

    Returns:
        A DeliveryEngine whose threads are not started yet.

    Raises:
        ConfigurationError: If the settings are invalid.
    """
    settings = settings or EngineSettings.from_django_settings()
    audit_sink = audit_sink or StructlogAuditSink()
    timed_sender = TimedChannelSender(
        sender or build_default_router(settings), settings.send_timeout_seconds
    )

    retry_scheduler = RetryScheduler(
        timed_sender,
        audit_sink,
        config=settings.retry,
        tick_seconds=settings.retry_tick_seconds,
        clock=clock,
        auto_start=auto_start_sweep,
    )
    queue = DeliveryQueue(
        timed_sender,
        store=store or build_job_store(settings),
        failure_handler=retry_scheduler.add_to_retry_queue,
        worker_count=settings.worker_count,
        max_lane_skips=settings.max_lane_skips,
        clock=clock,
    )
    retry_scheduler.add_listener(queue)

    aggregator = MetricsAggregator(
        queue.get_queue_stats, retry_scheduler.get_retry_stats, audit_sink
    )
    evaluator = AlertEvaluator(aggregator, audit_sink, defaults=settings.thresholds)
    monitor = QueueMonitorService(
        queue, retry_scheduler, aggregator, evaluator, audit_sink
    )
    alert_monitor = (
        AlertMonitor(evaluator, settings.alert_interval_seconds)
        if settings.alert_interval_seconds > 0
        else None
    )

    return DeliveryEngine(
        settings=settings,
        sender=timed_sender,
        queue=queue,
        retry_scheduler=retry_scheduler,
        aggregator=aggregator,
        evaluator=evaluator,
        monitor=monitor,
        alert_monitor=alert_monitor,
    )
