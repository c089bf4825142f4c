"""Retry scheduler: owns the "will we try again, and when" decision.

Failed deliveries are handed over by the delivery queue through
``add_to_retry_queue``. A sweep thread wakes every tick while retry jobs are
pending, re-sends every due notification directly through the channel sender
and either resolves, reschedules or abandons it.
"""

import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol

import structlog

from delivery.constants import AUDIT_ENTITY_NOTIFICATION, DEFAULT_RETRY_TICK_SECONDS
from delivery.enums import AuditStatus
from delivery.exceptions import DeliveryError, PermanentAbandonment
from delivery.logging import bind_job_id, clear_job_id
from delivery.schemas import (
    Notification,
    RetryConfig,
    RetryJob,
    RetryJobSnapshot,
    RetryStats,
)
from delivery.services.audit_sink import AuditSink, GuardedAuditSink
from delivery.services.channel_sender import ChannelSender, SendResult, deliver

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RetryListener(Protocol):
    """Observer of retry outcomes, registered with ``add_listener``."""

    def on_retry_attempted(
        self, notification: Notification, result: SendResult
    ) -> None:
        """Called after every retry send, before the outcome is applied."""
        ...

    def on_retry_succeeded(self, notification: Notification, attempts: int) -> None:
        """Called when a retry send succeeded and the retry job was removed."""
        ...

    def on_retry_abandoned(
        self, notification: Notification, abandonment: PermanentAbandonment
    ) -> None:
        """Called once per abandoned notification."""
        ...


class RetryScheduler:
    """Bounded-retry state machine for failed notifications.

    The retry table is guarded by one lock. Sends happen outside the lock,
    so a slow channel never blocks ``add_to_retry_queue`` or snapshot reads.
    A job being sent is tracked as in flight and is not picked up again by a
    concurrent sweep.
    """

    def __init__(
        self,
        sender: ChannelSender,
        audit_sink: AuditSink,
        config: RetryConfig | None = None,
        tick_seconds: float = DEFAULT_RETRY_TICK_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
        auto_start: bool = True,
    ) -> None:
        """Initialize the retry scheduler.

        Args:
            sender: Channel sender used for retry sends
            audit_sink: Receives retry_succeeded/rescheduled/abandoned events
            config: Retry policy; defaults to ``RetryConfig()``
            tick_seconds: Interval between sweeps
            clock: Returns the current UTC time
            auto_start: Start the sweep thread when a job is added
        """
        self.config = config or RetryConfig()
        self.tick_seconds = tick_seconds
        self._sender = sender
        self._audit = GuardedAuditSink(audit_sink)
        self._clock = clock
        self._auto_start = auto_start

        self._lock = threading.Lock()
        self._jobs: dict[str, RetryJob] = {}
        self._in_flight: set[str] = set()
        # Final attempt counts of resolved retry cycles
        self._history: list[int] = []
        self._succeeded_count = 0
        self._abandoned_count = 0
        self._listeners: list[RetryListener] = []

        self._sweep_thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    def add_listener(self, listener: RetryListener) -> None:
        """Register an observer of retry outcomes."""
        self._listeners.append(listener)

    def compute_delay_ms(self, attempts: int) -> float:
        """Return the backoff delay in milliseconds after ``attempts`` failures."""
        return self.config.delay_ms_for(attempts)

    def add_to_retry_queue(
        self, notification: Notification, error: DeliveryError | str | None
    ) -> None:
        """Take ownership of a failed notification.

        A notification already owned keeps its attempts and next attempt
        time; only its last error is overwritten. When the retry budget
        allows no retry at all the notification is abandoned immediately.

        Args:
            notification: The notification whose send failed
            error: The failure, or its message
        """
        message = error.message if isinstance(error, DeliveryError) else error
        now = self._clock()

        with self._lock:
            existing = self._jobs.get(notification.id)
            if existing is not None:
                existing.last_error = message
                existing.updated_at = now
                logger.warning(
                    "retry_job_reentered",
                    notification_id=notification.id,
                    attempts=existing.attempts,
                )
                return

            if self.config.max_attempts <= 1:
                job = RetryJob(
                    notification=notification,
                    attempts=1,
                    next_attempt_at=now,
                    last_error=message,
                    created_at=now,
                    updated_at=now,
                )
                self._history.append(job.attempts)
                self._abandoned_count += 1
                abandoned = job
            else:
                abandoned = None
                self._jobs[notification.id] = RetryJob(
                    notification=notification,
                    attempts=1,
                    next_attempt_at=now
                    + timedelta(milliseconds=self.compute_delay_ms(1)),
                    last_error=message,
                    created_at=now,
                    updated_at=now,
                )

        if abandoned is not None:
            self._report_abandoned(abandoned)
            return

        logger.info(
            "retry_job_added",
            notification_id=notification.id,
            channel=notification.channel.value,
            error=message,
        )
        if self._auto_start:
            self.start()

    def sweep(self, now: datetime | None = None) -> int:
        """Process every retry job due at ``now``.

        Args:
            now: Reference time; defaults to the scheduler clock

        Returns:
            Number of retry sends performed.
        """
        now = now or self._clock()
        with self._lock:
            due = [
                job.model_copy()
                for job in self._jobs.values()
                if job.next_attempt_at <= now
                and job.notification.id not in self._in_flight
            ]
            self._in_flight.update(job.notification.id for job in due)

        sent = 0
        for job in due:
            try:
                with self._lock:
                    if job.notification.id not in self._jobs:
                        # Cleared or removed since the sweep started
                        continue
                self._attempt(job)
                sent += 1
            finally:
                with self._lock:
                    self._in_flight.discard(job.notification.id)
        return sent

    def _attempt(self, job: RetryJob) -> None:
        notification = job.notification
        bind_job_id(notification.id)
        try:
            result = deliver(self._sender, notification)
        finally:
            clear_job_id()

        for listener in self._listeners:
            listener.on_retry_attempted(notification, result)

        now = self._clock()
        with self._lock:
            current = self._jobs.get(notification.id)
            if current is None:
                # Cleared while the send was in flight
                return
            if result.success:
                del self._jobs[notification.id]
                self._history.append(current.attempts)
                self._succeeded_count += 1
                outcome = "succeeded"
            elif current.attempts + 1 >= self.config.max_attempts:
                del self._jobs[notification.id]
                current.attempts += 1
                current.last_error = result.error
                current.updated_at = now
                self._history.append(current.attempts)
                self._abandoned_count += 1
                outcome = "abandoned"
            else:
                current.attempts += 1
                current.last_error = result.error
                current.updated_at = now
                current.next_attempt_at = now + timedelta(
                    milliseconds=self.compute_delay_ms(current.attempts)
                )
                outcome = "rescheduled"
            resolved = current.model_copy()

        if outcome == "succeeded":
            logger.info(
                "retry_succeeded",
                notification_id=notification.id,
                attempts=resolved.attempts,
            )
            self._audit.log_event(
                "retry_succeeded",
                AUDIT_ENTITY_NOTIFICATION,
                notification.id,
                f"Notification delivered after {resolved.attempts} failed attempts",
                AuditStatus.SUCCESS,
            )
            for listener in self._listeners:
                listener.on_retry_succeeded(notification, resolved.attempts)
        elif outcome == "abandoned":
            self._report_abandoned(resolved)
        else:
            logger.warning(
                "retry_rescheduled",
                notification_id=notification.id,
                attempts=resolved.attempts,
                next_attempt_at=resolved.next_attempt_at.isoformat(),
                error=resolved.last_error,
            )
            self._audit.log_event(
                "retry_rescheduled",
                AUDIT_ENTITY_NOTIFICATION,
                notification.id,
                f"Retry {resolved.attempts} scheduled for "
                f"{resolved.next_attempt_at.isoformat()}",
                AuditStatus.WARNING,
                resolved.last_error,
            )

    def _report_abandoned(self, job: RetryJob) -> None:
        abandonment = PermanentAbandonment(
            job.notification.id, job.attempts, job.last_error or ""
        )
        logger.error(
            "retry_abandoned",
            notification_id=job.notification.id,
            attempts=job.attempts,
            error=job.last_error,
        )
        self._audit.log_event(
            "retry_abandoned",
            AUDIT_ENTITY_NOTIFICATION,
            job.notification.id,
            f"Notification abandoned after {job.attempts} failed attempts",
            AuditStatus.ERROR,
            job.last_error,
        )
        for listener in self._listeners:
            listener.on_retry_abandoned(job.notification, abandonment)

    def remove(self, notification_id: str) -> bool:
        """Drop a retry job that is not yet due and not in flight.

        Returns:
            True if a job was removed.
        """
        now = self._clock()
        with self._lock:
            job = self._jobs.get(notification_id)
            if (
                job is None
                or notification_id in self._in_flight
                or job.next_attempt_at <= now
            ):
                return False
            del self._jobs[notification_id]
        logger.info("retry_job_removed", notification_id=notification_id)
        return True

    def clear_queue(self) -> int:
        """Force-abandon every pending retry job and stop the sweep.

        Does not wait for a retry send in flight; its outcome is discarded.

        Returns:
            Number of abandoned jobs.
        """
        with self._lock:
            cleared = list(self._jobs.values())
            self._jobs.clear()
            for job in cleared:
                self._history.append(job.attempts)
            self._abandoned_count += len(cleared)

        self.stop(timeout=0)
        for job in cleared:
            self._report_abandoned(job)
        logger.info("retry_queue_cleared", abandoned=len(cleared))
        return len(cleared)

    def has_pending(self, notification_id: str) -> bool:
        with self._lock:
            return notification_id in self._jobs

    def get_retry_jobs(self) -> list[RetryJobSnapshot]:
        """Return a snapshot of every pending retry job."""
        with self._lock:
            return [RetryJobSnapshot.from_job(job) for job in self._jobs.values()]

    def get_retry_stats(self) -> RetryStats:
        """Return a consistent snapshot of the retry table.

        ``average_attempts`` covers pending jobs and every resolved cycle.
        """
        with self._lock:
            jobs = [RetryJobSnapshot.from_job(job) for job in self._jobs.values()]
            counts = [job.attempts for job in jobs] + self._history
            return RetryStats(
                queue_size=len(jobs),
                jobs=jobs,
                average_attempts=sum(counts) / len(counts) if counts else 0.0,
                succeeded_count=self._succeeded_count,
                abandoned_count=self._abandoned_count,
            )

    def start(self) -> None:
        """Start the sweep thread if it is not already running.

        Every sweep thread gets its own stop event, so a thread that outlived
        ``stop`` keeps seeing its own stop signal after a restart.
        """
        with self._lock:
            if self._sweep_thread is not None and self._sweep_thread.is_alive():
                return
            self._stop_event = threading.Event()
            self._sweep_thread = threading.Thread(
                target=self._sweep_loop,
                args=(self._stop_event,),
                name="RetrySweep",
                daemon=True,
            )
            self._sweep_thread.start()
        logger.debug("retry_sweep_started", tick_seconds=self.tick_seconds)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the sweep thread; pending jobs are kept.

        Args:
            timeout: Seconds to wait for a sweep in the middle of a send
        """
        with self._lock:
            self._stop_event.set()
            thread = self._sweep_thread
            self._sweep_thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("retry_sweep_stop_pending", timeout_seconds=timeout)
        logger.debug("retry_sweep_stopped")

    @property
    def is_sweeping(self) -> bool:
        thread = self._sweep_thread
        return thread is not None and thread.is_alive()

    def _sweep_loop(self, stop_event: threading.Event) -> None:
        """Sweep every tick until stopped or the retry table is empty."""
        while not stop_event.wait(timeout=self.tick_seconds):
            try:
                self.sweep()
            except Exception as e:
                logger.error("retry_sweep_failed", error=str(e), exc_info=True)

            with self._lock:
                if stop_event.is_set():
                    break
                if not self._jobs:
                    # Next add_to_retry_queue restarts the loop
                    if self._sweep_thread is threading.current_thread():
                        self._sweep_thread = None
                    break
        logger.debug("retry_sweep_idle")
